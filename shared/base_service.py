"""
Service shell for the edge gateway.

Owns the FastAPI app, request correlation, /health and /metrics, and the
mapping of EdgeGatewayException to ``{"error": message}`` responses.
Subclasses register their own routes after the shell's, so the shell's
endpoints win over any catch-all.
"""

import os
import time
from typing import Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from shared.config import EdgeSettings, get_config
from shared.errors import EdgeGatewayException
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

VERSION = "1.0.0"


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, settings: Optional[EdgeSettings] = None):
        self.service_name = service_name
        # ConfigurationError surfaces here, before any route is installed.
        self.config = (settings if settings is not None else get_config()).ensure_complete()
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()
        self._setup_error_handlers()

    def _create_app(self) -> FastAPI:
        # Interactive docs would shadow gateway paths; only expose them locally.
        local = self.config.env == "local"
        return FastAPI(
            title=f"{self.service_name.title()} Gateway",
            version=VERSION,
            docs_url="/docs" if local else None,
            redoc_url=None,
            openapi_url="/openapi.json" if local else None,
        )

    def _setup_middleware(self):
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self.app.middleware("http")(self._correlate_request)

    async def _correlate_request(self, request: Request, call_next):
        """Tag the request with an id, then log and time it under its route label."""
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        started = time.perf_counter()
        try:
            response = await call_next(request)
            duration = time.perf_counter() - started
            route = self._route_label(request)

            self.metrics.record_http_request(request.method, route, response.status_code, duration)
            self.logger.info(
                "HTTP request",
                method=request.method,
                route=route,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )

            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    def _route_label(self, request: Request) -> str:
        """Low-cardinality label: the classified route kind, else the matched path."""
        route_kind = getattr(request.state, "route_kind", None)
        if route_kind:
            return route_kind
        route = request.scope.get("route")
        return getattr(route, "path", "unmatched")

    def _setup_routes(self):
        @self.app.get("/health", include_in_schema=False)
        async def health_check():
            """Liveness plus dependency status; 503 when any dependency is down."""
            status_code, report = await self._health_report()
            return JSONResponse(status_code=status_code, content=report)

        @self.app.get("/metrics", include_in_schema=False)
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=self.metrics.render(), media_type=CONTENT_TYPE_LATEST)

    async def _health_report(self):
        report = {
            "service": self.service_name,
            "version": VERSION,
            "commit": os.getenv("GIT_COMMIT", "unknown"),
            "uptime_seconds": round(time.time() - self._start_time, 3),
        }
        try:
            dependencies = await self._check_dependencies()
        except Exception as e:
            self.logger.error("Health check failed", error=str(e))
            self.metrics.record_health_check("error")
            return 503, {**report, "status": "error", "error": str(e)}

        healthy = all(state == "ok" for state in dependencies.values())
        status = "ok" if healthy else "degraded"
        self.metrics.record_health_check(status)
        return (200 if healthy else 503), {**report, "status": status, "dependencies": dependencies}

    def _setup_error_handlers(self):
        @self.app.exception_handler(EdgeGatewayException)
        async def edge_exception_handler(request: Request, exc: EdgeGatewayException):
            log = self.logger.error if exc.status_code >= 500 else self.logger.warning
            log(
                "Request failed",
                code=exc.code,
                message=exc.message,
                status_code=exc.status_code
            )
            self.metrics.record_error(exc.code)
            return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    async def _check_dependencies(self) -> Dict[str, str]:
        """Map of dependency name to "ok" or "error". Override in subclasses."""
        return {}

    def run(self):
        """Run the service under uvicorn."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
