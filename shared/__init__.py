"""
Shared utilities for the edge gateway.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Bounded retries for idempotent operations
- base_service: FastAPI service shell (health, metrics, error handlers)

Do not import from service_* packages into shared/.
"""
