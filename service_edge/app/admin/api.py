"""
Administrative CRUD over subscriber records.
"""

import hmac
import json
import time
import uuid
from typing import Callable, List, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from shared.errors import AuthenticationError, CacheError, NotFoundError, ValidationError
from shared.logging import get_logger, set_subscriber_context
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, call_with_retry

from ..contracts import DecisionCache, RecordStore
from ..models import SubscriberRecord, SubscriberStatus, UpsertSubscriberRequest, UpsertSubscriberResponse
from ..routing import canonical_id, is_opaque_id


class AdminAPI:
    """Authenticated CRUD over the record store.

    Every mutation is followed by deleting the subscriber's cached
    admission decision, so the next check re-reads the store. The delete
    is idempotent and retried; if it still fails the mutation stands and
    the stale entry lives until its own TTL.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: DecisionCache,
        admin_key: str,
        invalidation_retry: Optional[RetryConfig] = None,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.cache = cache
        self._expected_header = f"Bearer {admin_key}".encode("utf-8")
        self.invalidation_retry = invalidation_retry or RetryConfig()
        self.clock = clock
        self.id_factory = id_factory
        self.metrics = metrics
        self.logger = get_logger("edge.admin.api")

    def authenticate(self, authorization: Optional[str]) -> None:
        """Constant-time bearer check. The presented value is never logged."""
        presented = (authorization or "").encode("utf-8")
        if not hmac.compare_digest(presented, self._expected_header):
            self.logger.warning("Admin authentication failed")
            raise AuthenticationError()

    async def list(self) -> List[SubscriberRecord]:
        """All records, newest first."""
        return await self.store.list_all()

    async def upsert(self, subscriber_id: Optional[str], expiration_timestamp: int,
                     notes: Optional[str] = None) -> str:
        """Create or update a record and drop its cached decision."""
        if subscriber_id:
            if not is_opaque_id(subscriber_id):
                raise ValidationError("id must be an 8-4-4-4-12 hexadecimal identifier")
            subscriber_id = canonical_id(subscriber_id)
        else:
            subscriber_id = self.id_factory()
        set_subscriber_context(subscriber_id)

        now = int(self.clock())
        record = SubscriberRecord(
            id=subscriber_id,
            expiration_timestamp=expiration_timestamp,
            status=SubscriberStatus.at(expiration_timestamp, now),
            notes=notes,
            created_at=now,
        )

        inserted = await self.store.upsert(record)
        self._count("create" if inserted else "update")
        self.logger.info(
            "Subscriber upserted",
            subscriber_id=subscriber_id,
            inserted=inserted,
            status=record.status.value
        )

        await self._invalidate(subscriber_id)
        return subscriber_id

    async def delete(self, subscriber_id: str) -> None:
        """Remove a record (missing ids are a no-op) and drop its cached decision."""
        if not is_opaque_id(subscriber_id):
            raise ValidationError("id must be an 8-4-4-4-12 hexadecimal identifier")
        subscriber_id = canonical_id(subscriber_id)
        set_subscriber_context(subscriber_id)

        deleted = await self.store.delete(subscriber_id)
        self._count("delete")
        self.logger.info("Subscriber delete processed", subscriber_id=subscriber_id, existed=deleted)

        await self._invalidate(subscriber_id)

    async def _invalidate(self, subscriber_id: str):
        try:
            await call_with_retry(
                self.cache.delete,
                subscriber_id,
                retry_on=(CacheError,),
                config=self.invalidation_retry,
            )
        except RetryError as e:
            self.logger.error(
                "Decision cache invalidation failed; entry expires with its TTL",
                subscriber_id=subscriber_id,
                attempts=e.attempts,
                error=str(e.last_exception)
            )
            if self.metrics:
                self.metrics.increment_counter("cache_invalidations_total", status="failed")
            return

        if self.metrics:
            self.metrics.increment_counter("cache_invalidations_total", status="ok")

    def _count(self, operation: str):
        if self.metrics:
            self.metrics.increment_counter("admin_mutations_total", operation=operation)

    async def handle(self, request: Request, sub_path: str) -> Response:
        """Dispatch an /admin/api request. Authentication precedes routing."""
        self.authenticate(request.headers.get("Authorization"))

        method = request.method.upper()

        if sub_path == "users" and method == "GET":
            records = await self.list()
            return JSONResponse(status_code=200, content=[r.to_dict() for r in records])

        if sub_path == "users" and method == "POST":
            payload = await self._parse_upsert(request)
            subscriber_id = await self.upsert(payload.id, payload.expiration_timestamp, payload.notes)
            return JSONResponse(
                status_code=201,
                content=UpsertSubscriberResponse(id=subscriber_id).model_dump()
            )

        if sub_path.startswith("users/") and method == "DELETE":
            await self.delete(sub_path[len("users/"):])
            return Response(status_code=204)

        raise NotFoundError()

    async def _parse_upsert(self, request: Request) -> UpsertSubscriberRequest:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Request body must be valid JSON")

        try:
            return UpsertSubscriberRequest.model_validate(body)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "body"
            raise ValidationError(f"{field}: {first.get('msg', 'invalid value')}")
