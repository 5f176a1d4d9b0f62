"""
DNS-over-HTTPS relay.
"""

from typing import Optional

import httpx
from fastapi import Request, Response

from shared.errors import UpstreamError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .passthrough import stream_upstream

DNS_MESSAGE = "application/dns-message"


class DnsRelay:
    """Forwards RFC 8484 queries verbatim to a fixed upstream resolver.

    GET requests carry the base64url wire message in the ``dns`` query
    parameter; POST requests carry the raw wire message as the body.
    """

    def __init__(self, upstream_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.upstream_url = upstream_url
        self.timeout = timeout
        self.transport = transport
        self.metrics = metrics
        self.logger = get_logger("edge.adapters.doh")

    async def build_upstream_request(self, request: Request) -> httpx.Request:
        if request.method.upper() == "POST":
            body = await request.body()
            if body:
                return httpx.Request(
                    "POST",
                    self.upstream_url,
                    content=body,
                    headers={"Content-Type": DNS_MESSAGE, "Accept": DNS_MESSAGE},
                )

        dns_param = request.query_params.get("dns")
        if dns_param:
            return httpx.Request(
                "GET",
                self.upstream_url,
                params={"dns": dns_param},
                headers={"Accept": DNS_MESSAGE},
            )

        raise ValidationError("Invalid DoH request")

    async def handle(self, request: Request) -> Response:
        upstream_request = await self.build_upstream_request(request)
        try:
            response = await stream_upstream("doh", upstream_request, self.timeout, self.transport)
        except UpstreamError:
            self._count("error")
            raise

        self._count(str(response.status_code))
        return response

    def _count(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("relay_requests_total", target="doh", status=status)
