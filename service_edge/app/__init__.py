"""
Edge Gateway Service package.

The gateway sits in front of a multi-tenant tunneling service:

- app.main: FastAPI app, catch-all HTTP and WebSocket routes.
- app.routing: Request classification into tagged route variants.
- app.admission: Cache-aside admission gate for tunnel access.
- app.admin: Authenticated CRUD over subscriber records.
- app.cache: Redis-backed decision cache.
- app.persistence: PostgreSQL record store.
- app.adapters: DoH relay, fallback proxy, geolocation, tunnel bridge.

Guidelines:
- The service is stateless; rely on the external cache and store.
- Admission fails closed; only genuine absence or expiry is cached.
"""
