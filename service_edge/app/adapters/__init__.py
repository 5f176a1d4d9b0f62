"""
Adapters package for the Edge Gateway Service.

Thin wrappers around external collaborators reached over the network:

- DnsRelay: DNS-over-HTTPS passthrough
- FallbackProxy: reverse proxy for unmatched paths
- GeoLocator: caller geolocation for /{id}/info
- WebSocketTunnelRelay: bridge to the tunnel data plane

Adapters hold configuration only; no per-request state.
"""

from .doh_relay import DnsRelay
from .fallback_proxy import FallbackProxy
from .geolocation import GeoLocator, parse_ip
from .tunnel_relay import WebSocketTunnelRelay

__all__ = [
    "DnsRelay",
    "FallbackProxy",
    "GeoLocator",
    "WebSocketTunnelRelay",
    "parse_ip",
]
