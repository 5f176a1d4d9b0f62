"""
Cache-aside admission gate for tunnel access.
"""

import time
from typing import Callable, Optional

from shared.errors import CacheError, StoreError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..contracts import DecisionCache, RecordStore
from ..models import Decision


class ValidationGate:
    """Boolean admission decision per subscriber id.

    The gate reads the decision cache first and falls back to the record
    store on a miss, caching what it learns:

    - live record: ``valid`` for ``max(valid_ttl_floor, expiration - now)``
    - absent or not live: ``invalid`` for ``invalid_ttl``
    - store failure: deny, and cache nothing

    Only genuine absence or expiry is cached as a denial. A denial derived
    from a store error is indeterminate and must not outlive the outage.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: DecisionCache,
        valid_ttl_floor: int = 60,
        invalid_ttl: int = 3600,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.cache = cache
        self.valid_ttl_floor = valid_ttl_floor
        self.invalid_ttl = invalid_ttl
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("edge.admission.gate")

    async def is_authorized(self, subscriber_id: str) -> bool:
        """Decide whether ``subscriber_id`` may open a tunnel."""
        cached = await self._read_cache(subscriber_id)
        if cached is not None:
            allowed = cached == Decision.VALID
            self._record(allowed, "cache")
            return allowed

        try:
            record = await self.store.get(subscriber_id)
        except Exception as e:
            # Any store failure is indeterminate: deny, cache nothing.
            self.logger.error(
                "Record store lookup failed, denying without caching",
                subscriber_id=subscriber_id,
                error=str(e),
                error_type=type(e).__name__,
                contract_error=isinstance(e, StoreError)
            )
            self._record(False, "store_error")
            return False

        now = int(self.clock())

        if record is None:
            await self._write_cache(subscriber_id, Decision.INVALID, self.invalid_ttl)
            self._record(False, "store")
            return False

        if record.is_live(now):
            ttl = max(self.valid_ttl_floor, record.expiration_timestamp - now)
            await self._write_cache(subscriber_id, Decision.VALID, ttl)
            self._record(True, "store")
            return True

        await self._write_cache(subscriber_id, Decision.INVALID, self.invalid_ttl)
        self._record(False, "store")
        return False

    async def _read_cache(self, subscriber_id: str) -> Optional[Decision]:
        try:
            return await self.cache.get(subscriber_id)
        except CacheError as e:
            # Treated as a miss; the store is authoritative.
            self.logger.warning("Decision cache read failed", subscriber_id=subscriber_id, error=str(e))
            return None

    async def _write_cache(self, subscriber_id: str, decision: Decision, ttl: int):
        try:
            await self.cache.put(subscriber_id, decision, ttl)
        except CacheError as e:
            self.logger.warning(
                "Decision cache write failed",
                subscriber_id=subscriber_id,
                decision=decision.value,
                error=str(e)
            )

    def _record(self, allowed: bool, source: str):
        decision = "allow" if allowed else "deny"
        self.logger.info("Admission decision", decision=decision, source=source)
        if self.metrics:
            self.metrics.increment_counter("admission_decisions_total", decision=decision, source=source)
