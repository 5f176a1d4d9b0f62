"""
Pluggable collaborators for routes whose content lives outside the gateway.

A route whose collaborator is not registered answers 404.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from fastapi import Request, Response, WebSocket

from .models import RequestContext
from .routing import ConfigFlavor, Route

# (websocket, subscriber_id) -> None, called only after admission succeeds
TunnelHandler = Callable[[WebSocket, str], Awaitable[None]]

# (request, route, context) -> response, for admin/subscriber pages and legacy aliases
PageRenderer = Callable[[Request, Route, RequestContext], Awaitable[Response]]

# (flavor, subscriber_id, context) -> configuration text
ConfigRenderer = Callable[[ConfigFlavor, str, RequestContext], Awaitable[str]]


@dataclass(frozen=True)
class Collaborators:
    tunnel: Optional[TunnelHandler] = None
    pages: Optional[PageRenderer] = None
    configs: Optional[ConfigRenderer] = None
    legacy: Optional[PageRenderer] = None
