"""
Reverse proxy for requests that match no other route.
"""

from typing import Optional

import httpx
from fastapi import Request, Response

from shared.errors import UpstreamError
from shared.metrics import MetricsCollector

from .passthrough import forwardable_headers, stream_upstream


class FallbackProxy:
    """Serves unmatched paths from the configured fallback domain over HTTPS."""

    def __init__(self, fallback_domain: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.fallback_domain = fallback_domain
        self.timeout = timeout
        self.transport = transport
        self.metrics = metrics

    def target_url(self, request: Request) -> str:
        url = f"https://{self.fallback_domain}{request.url.path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return url

    async def handle(self, request: Request) -> Response:
        upstream_request = httpx.Request(
            request.method,
            self.target_url(request),
            headers=forwardable_headers(request.headers.items(), drop=("host", "content-length")),
            content=await request.body(),
        )
        try:
            response = await stream_upstream("fallback", upstream_request, self.timeout, self.transport)
        except UpstreamError:
            self._count("error")
            raise

        self._count(str(response.status_code))
        return response

    def _count(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("relay_requests_total", target="fallback", status=status)
