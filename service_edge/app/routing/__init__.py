"""
Routing package for the Edge Gateway Service.

Classifies each request into one tagged route variant; no state is kept
between requests.
"""

from .routes import Route, RouteKind, ConfigFlavor, classify, is_opaque_id, canonical_id

__all__ = [
    "Route",
    "RouteKind",
    "ConfigFlavor",
    "classify",
    "is_opaque_id",
    "canonical_id",
]
