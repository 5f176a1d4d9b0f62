"""
Edge gateway service.

Classifies every request once, then hands it to exactly one handler:
admin API, tunnel admission, subscriber endpoints, DNS relay, legacy
aliases or the fallback proxy.
"""

import time
from typing import Awaitable, Callable, Dict, Optional

import httpx
from fastapi import Request, Response, WebSocket
from fastapi.responses import JSONResponse, PlainTextResponse

from shared.base_service import BaseService
from shared.config import EdgeSettings
from shared.errors import AuthenticationError, NotFoundError
from shared.logging import request_id_var, set_subscriber_context
from shared.retry import RetryConfig

from .adapters import DnsRelay, FallbackProxy, GeoLocator, WebSocketTunnelRelay, parse_ip
from .admin import AdminAPI
from .admission import ValidationGate
from .cache import RedisDecisionCache
from .collaborators import Collaborators, PageRenderer
from .contracts import DecisionCache, RecordStore
from .models import RequestContext
from .persistence import PostgreSQLRecordStore
from .routing import Route, RouteKind, classify

HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

RouteHandler = Callable[[Request, Route, RequestContext], Awaitable[Response]]


class EdgeGatewayService(BaseService):
    """Edge gateway service implementation."""

    def __init__(
        self,
        settings: Optional[EdgeSettings] = None,
        store: Optional[RecordStore] = None,
        cache: Optional[DecisionCache] = None,
        collaborators: Optional[Collaborators] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__("edge", settings)
        config = self.config

        self.store = store if store is not None else PostgreSQLRecordStore(config.postgres_dsn)
        self.cache = cache if cache is not None else RedisDecisionCache(config.redis_url)

        self.gate = ValidationGate(
            self.store,
            self.cache,
            valid_ttl_floor=config.valid_ttl_floor_seconds,
            invalid_ttl=config.invalid_ttl_seconds,
            clock=clock,
            metrics=self.metrics,
        )
        self.admin_api = AdminAPI(
            self.store,
            self.cache,
            config.admin_key,
            invalidation_retry=RetryConfig(
                max_attempts=config.invalidation_attempts,
                base_delay=config.invalidation_base_delay,
                max_delay=1.0,
            ),
            clock=clock,
            metrics=self.metrics,
        )

        timeout = config.upstream_timeout_seconds
        self.dns_relay = DnsRelay(config.doh_upstream_url, timeout, http_transport, self.metrics)
        self.fallback_proxy = FallbackProxy(config.fallback_domain, timeout, http_transport, self.metrics)
        self.geolocator = GeoLocator(config.geolocation_url, timeout, http_transport)

        self.collaborators = collaborators or Collaborators()
        self.tunnel = self.collaborators.tunnel or WebSocketTunnelRelay(config.tunnel_upstream_url)

        self._handlers: Dict[RouteKind, RouteHandler] = {
            RouteKind.ADMIN_API: self._handle_admin_api,
            RouteKind.ADMIN_PAGE: self._page_handler(self.collaborators.pages),
            RouteKind.TUNNEL: self._handle_unupgraded_tunnel,
            RouteKind.REJECTED_UPGRADE: self._handle_rejected_upgrade,
            RouteKind.SUBSCRIBER_PAGE: self._page_handler(self.collaborators.pages),
            RouteKind.SUBSCRIBER_INFO: self._handle_subscriber_info,
            RouteKind.SUBSCRIPTION_CONFIG: self._handle_subscription_config,
            RouteKind.DNS_RELAY: self._handle_dns_relay,
            RouteKind.LEGACY: self._page_handler(self.collaborators.legacy),
            RouteKind.FALLBACK: self._handle_fallback,
        }

        @self.app.on_event("startup")
        async def _startup():
            await self.store.start()
            await self.cache.start()
            self.logger.info("Edge gateway started")

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.cache.stop()
            await self.store.stop()
            self.logger.info("Edge gateway stopped")

        self._setup_edge_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.edge_service = self

    def _setup_edge_routes(self):
        """Install the catch-all routes; registered after /health and /metrics."""

        @self.app.websocket("/{path:path}")
        async def upgrade_endpoint(websocket: WebSocket, path: str):
            """Tunnel admission for protocol-upgrade requests."""
            route = classify(websocket.url.path, upgrade=True)
            await self._handle_upgrade(websocket, route)

        @self.app.api_route("/{path:path}", methods=HTTP_METHODS, include_in_schema=False)
        async def dispatch(request: Request, path: str):
            """Classify the request and run its handler."""
            upgrade = request.headers.get("upgrade", "").lower() == "websocket"
            route = classify(request.url.path, upgrade=upgrade)
            request.state.route_kind = route.kind.value
            if route.subscriber_id:
                set_subscriber_context(route.subscriber_id)

            handler = self._handlers[route.kind]
            return await handler(request, route, self._request_context(request))

    def _request_context(self, request: Request) -> RequestContext:
        return RequestContext(
            settings=self.config,
            client_ip=self._get_client_ip(request),
            request_id=request_id_var.get(),
        )

    def _get_client_ip(self, request: Request) -> str:
        """Extract the caller IP from standard headers.

        Header values that are not literal IP addresses are skipped, ending
        at the socket peer.
        """
        forwarded_for = request.headers.get("X-Forwarded-For", "")
        candidates = (
            request.headers.get("CF-Connecting-IP"),
            forwarded_for.split(",")[0],
            request.headers.get("X-Real-IP"),
        )
        for candidate in candidates:
            address = parse_ip(candidate)
            if address:
                return address
        if request.client:
            return request.client.host
        return "unknown"

    async def _handle_upgrade(self, websocket: WebSocket, route: Route):
        if route.kind == RouteKind.TUNNEL:
            set_subscriber_context(route.subscriber_id)
            if await self.gate.is_authorized(route.subscriber_id):
                await self.tunnel(websocket, route.subscriber_id)
                return

        # Malformed ids, non-tunnel paths and denials look the same to the caller.
        if "websocket.http.response" in websocket.scope.get("extensions", {}):
            await websocket.send_denial_response(
                JSONResponse(status_code=401, content=AuthenticationError().to_response().model_dump())
            )
        else:
            await websocket.close(code=1008)

    async def _handle_admin_api(self, request: Request, route: Route, context: RequestContext) -> Response:
        return await self.admin_api.handle(request, route.sub_path)

    async def _handle_unupgraded_tunnel(self, request: Request, route: Route, context: RequestContext) -> Response:
        if not await self.gate.is_authorized(route.subscriber_id):
            raise AuthenticationError()
        return PlainTextResponse(
            "Upgrade Required",
            status_code=426,
            headers={"Upgrade": "websocket"},
        )

    async def _handle_rejected_upgrade(self, request: Request, route: Route, context: RequestContext) -> Response:
        raise AuthenticationError()

    async def _handle_subscriber_info(self, request: Request, route: Route, context: RequestContext) -> Response:
        client_info = await self.geolocator.lookup(context.client_ip)
        return JSONResponse({
            "clientInfo": client_info,
            "proxyInfo": {"ip": context.settings.proxy_ip},
        })

    async def _handle_subscription_config(self, request: Request, route: Route, context: RequestContext) -> Response:
        renderer = self.collaborators.configs
        if renderer is None:
            raise NotFoundError()
        text = await renderer(route.flavor, route.subscriber_id, context)
        return PlainTextResponse(text)

    async def _handle_dns_relay(self, request: Request, route: Route, context: RequestContext) -> Response:
        return await self.dns_relay.handle(request)

    async def _handle_fallback(self, request: Request, route: Route, context: RequestContext) -> Response:
        return await self.fallback_proxy.handle(request)

    def _page_handler(self, renderer: Optional[PageRenderer]) -> RouteHandler:
        async def handle(request: Request, route: Route, context: RequestContext) -> Response:
            if renderer is None:
                raise NotFoundError()
            return await renderer(request, route, context)

        return handle

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check edge gateway dependencies."""
        return {
            "redis": "ok" if await self.cache.health_check() else "error",
            "postgres": "ok" if await self.store.health_check() else "error",
        }


def create_app():
    """Create edge gateway application."""
    service = EdgeGatewayService()
    return service.app


if __name__ == "__main__":
    service = EdgeGatewayService()
    service.run()
