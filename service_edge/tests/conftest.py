"""
Shared fixtures for Edge Gateway tests.
"""

import dataclasses
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import EdgeSettings
from shared.errors import CacheError, StoreError
from service_edge.app.contracts import DecisionCache, RecordStore
from service_edge.app.main import EdgeGatewayService
from service_edge.app.models import Decision, SubscriberRecord, SubscriberStatus

NOW = 1_700_000_000
SUBSCRIBER_ID = "3f2b8c1e-9a4d-4e2f-8b6a-1c2d3e4f5a6b"
ADMIN_KEY = "test-admin-key"


class FakeClock:
    """Settable clock returning epoch seconds."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class InMemoryRecordStore(RecordStore):
    """Record store double that counts reads and can simulate an outage."""

    def __init__(self):
        self.records: Dict[str, SubscriberRecord] = {}
        self.fail = False
        self.healthy = True
        self.reads = 0

    def _check(self):
        if self.fail:
            raise StoreError("connection refused")

    async def get(self, subscriber_id: str) -> Optional[SubscriberRecord]:
        self.reads += 1
        self._check()
        return self.records.get(subscriber_id)

    async def list_all(self) -> List[SubscriberRecord]:
        self._check()
        return sorted(self.records.values(), key=lambda r: r.created_at, reverse=True)

    async def upsert(self, record: SubscriberRecord) -> bool:
        self._check()
        existing = self.records.get(record.id)
        if existing:
            self.records[record.id] = dataclasses.replace(record, created_at=existing.created_at)
            return False
        self.records[record.id] = record
        return True

    async def delete(self, subscriber_id: str) -> bool:
        self._check()
        return self.records.pop(subscriber_id, None) is not None

    async def health_check(self) -> bool:
        return self.healthy

    def add(self, subscriber_id: str, expiration_timestamp: int,
            status: SubscriberStatus = SubscriberStatus.ACTIVE,
            created_at: int = NOW - 86400, notes: Optional[str] = None) -> SubscriberRecord:
        record = SubscriberRecord(
            id=subscriber_id,
            expiration_timestamp=expiration_timestamp,
            status=status,
            created_at=created_at,
            notes=notes,
        )
        self.records[subscriber_id] = record
        return record


class InMemoryDecisionCache(DecisionCache):
    """Decision cache double honouring TTLs against a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.entries: Dict[str, Tuple[Decision, int, float]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.fail_deletes = 0
        self.reads = 0
        self.writes: List[Tuple[str, Decision, int]] = []
        self.delete_attempts = 0

    async def get(self, subscriber_id: str) -> Optional[Decision]:
        self.reads += 1
        if self.fail_reads:
            raise CacheError("cache read timeout")
        key = self.key_for(subscriber_id)
        entry = self.entries.get(key)
        if entry is None:
            return None
        decision, _, expires_at = entry
        if expires_at <= self.clock():
            del self.entries[key]
            return None
        return decision

    async def put(self, subscriber_id: str, decision: Decision, ttl_seconds: int) -> None:
        if self.fail_writes:
            raise CacheError("cache write timeout")
        self.writes.append((subscriber_id, decision, ttl_seconds))
        self.entries[self.key_for(subscriber_id)] = (decision, ttl_seconds, self.clock() + ttl_seconds)

    async def delete(self, subscriber_id: str) -> None:
        self.delete_attempts += 1
        if self.fail_deletes:
            self.fail_deletes -= 1
            raise CacheError("cache delete timeout")
        self.entries.pop(self.key_for(subscriber_id), None)

    def entry(self, subscriber_id: str) -> Optional[Tuple[Decision, int, float]]:
        return self.entries.get(self.key_for(subscriber_id))


@pytest.fixture
def clock():
    """Fixed clock."""
    return FakeClock()


@pytest.fixture
def store():
    """In-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def cache(clock):
    """In-memory decision cache."""
    return InMemoryDecisionCache(clock)


@pytest.fixture
def settings():
    """Complete settings for tests."""
    return EdgeSettings(
        admin_key=ADMIN_KEY,
        invalidation_base_delay=0.0,
        proxy_ip="203.0.113.7",
    )


@pytest.fixture
def make_service(settings, store, cache, clock):
    """Factory for services sharing the test doubles."""
    def _make(**kwargs):
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("store", store)
        kwargs.setdefault("cache", cache)
        kwargs.setdefault("clock", clock)
        return EdgeGatewayService(**kwargs)

    return _make


@pytest.fixture
def edge_service(make_service):
    """Edge gateway wired to in-memory doubles."""
    return make_service()


@pytest.fixture
def client(edge_service):
    """Create test client."""
    return TestClient(edge_service.app)


@pytest.fixture
def admin_headers():
    """Valid admin bearer header."""
    return {"Authorization": f"Bearer {ADMIN_KEY}"}
