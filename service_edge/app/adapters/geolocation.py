"""
Client geolocation lookup for the subscriber info endpoint.
"""

import ipaddress
from typing import Any, Dict, Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger

GEO_FIELDS = "status,message,country,regionName,city,isp,org,as,query,risk"


def parse_ip(value: Optional[str]) -> Optional[str]:
    """Normalized form of a literal IPv4/IPv6 address, else None."""
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


class GeoLocator:
    """Looks up the caller's address with an ip-api compatible service."""

    def __init__(self, url_template: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url_template = url_template
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("edge.adapters.geolocation")

    async def lookup(self, ip: str) -> Dict[str, Any]:
        address = parse_ip(ip)
        if address is None:
            self.logger.warning("Refusing geolocation for non-IP address", address=ip)
            raise UpstreamError("geolocation", "Invalid client address")

        url = self.url_template.format(ip=address)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, params={"fields": GEO_FIELDS})
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            self.logger.error("Geolocation lookup failed", error=str(e))
            raise UpstreamError("geolocation", "Lookup failed")
        except ValueError as e:
            self.logger.error("Geolocation returned invalid JSON", error=str(e))
            raise UpstreamError("geolocation", "Invalid response")
