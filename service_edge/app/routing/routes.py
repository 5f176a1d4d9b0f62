"""
Request classification for the edge gateway.

Every request resolves to exactly one ``Route`` before any handler runs.
Priority order:

1. admin API and admin pages
2. protocol-upgrade requests (tunnel admission, or cheap rejection)
3. subscriber pages, info and subscription configs
4. DNS relay
5. legacy aliases
6. fallback
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

OPAQUE_ID_PATTERN = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

_OPAQUE_ID_RE = re.compile(rf"^{OPAQUE_ID_PATTERN}$", re.IGNORECASE)
_TUNNEL_RE = re.compile(rf"^/({OPAQUE_ID_PATTERN})$", re.IGNORECASE)
_SUBSCRIBER_PAGE_RE = re.compile(rf"^/({OPAQUE_ID_PATTERN})(/|/script\.js|/style\.css)?$", re.IGNORECASE)
_SUBSCRIBER_INFO_RE = re.compile(rf"^/({OPAQUE_ID_PATTERN})/info$", re.IGNORECASE)
_SUBSCRIPTION_CONFIG_RE = re.compile(rf"^/(xray|sb|clash)/({OPAQUE_ID_PATTERN})$", re.IGNORECASE)

ADMIN_PREFIX = "/admin"
ADMIN_API_PREFIX = "/admin/api"
DNS_RELAY_PREFIX = "/dns-query"
LEGACY_PREFIXES = ("/panel", "/sub", "/login", "/logout", "/secrets", "/favicon.ico")


class RouteKind(str, Enum):
    """Closed set of route variants."""
    ADMIN_API = "admin_api"
    ADMIN_PAGE = "admin_page"
    TUNNEL = "tunnel"
    REJECTED_UPGRADE = "rejected_upgrade"
    SUBSCRIBER_PAGE = "subscriber_page"
    SUBSCRIBER_INFO = "subscriber_info"
    SUBSCRIPTION_CONFIG = "subscription_config"
    DNS_RELAY = "dns_relay"
    LEGACY = "legacy"
    FALLBACK = "fallback"


class ConfigFlavor(str, Enum):
    """Subscription config formats served under /{flavor}/{id}."""
    XRAY = "xray"
    SING_BOX = "sb"
    CLASH = "clash"


@dataclass(frozen=True)
class Route:
    """A classified request.

    ``subscriber_id`` is canonical (lower case) whenever present.
    ``sub_path`` is the remainder after the admin API prefix, or the
    asset suffix of a subscriber page.
    """
    kind: RouteKind
    subscriber_id: Optional[str] = None
    flavor: Optional[ConfigFlavor] = None
    sub_path: str = ""


def is_opaque_id(value: str) -> bool:
    """True when ``value`` has the 8-4-4-4-12 hex shape (any case)."""
    return bool(_OPAQUE_ID_RE.match(value or ""))


def canonical_id(value: str) -> str:
    return value.lower()


def classify(path: str, upgrade: bool = False) -> Route:
    """Resolve a request path and upgrade signal to a single route."""
    path = path or "/"

    if path == ADMIN_API_PREFIX or path.startswith(ADMIN_API_PREFIX + "/"):
        return Route(RouteKind.ADMIN_API, sub_path=path[len(ADMIN_API_PREFIX) + 1:])
    if path.startswith(ADMIN_PREFIX):
        return Route(RouteKind.ADMIN_PAGE, sub_path=path[len(ADMIN_PREFIX):])

    if upgrade:
        match = _TUNNEL_RE.match(path)
        if match:
            return Route(RouteKind.TUNNEL, subscriber_id=canonical_id(match.group(1)))
        return Route(RouteKind.REJECTED_UPGRADE)

    match = _SUBSCRIBER_INFO_RE.match(path)
    if match:
        return Route(RouteKind.SUBSCRIBER_INFO, subscriber_id=canonical_id(match.group(1)))

    match = _SUBSCRIBER_PAGE_RE.match(path)
    if match:
        return Route(
            RouteKind.SUBSCRIBER_PAGE,
            subscriber_id=canonical_id(match.group(1)),
            sub_path=match.group(2) or "",
        )

    match = _SUBSCRIPTION_CONFIG_RE.match(path)
    if match:
        return Route(
            RouteKind.SUBSCRIPTION_CONFIG,
            subscriber_id=canonical_id(match.group(2)),
            flavor=ConfigFlavor(match.group(1).lower()),
        )

    if path.startswith(DNS_RELAY_PREFIX):
        return Route(RouteKind.DNS_RELAY)

    if any(path.startswith(prefix) for prefix in LEGACY_PREFIXES):
        return Route(RouteKind.LEGACY, sub_path=path)

    return Route(RouteKind.FALLBACK, sub_path=path)
