"""
Storage contracts shared by the admission gate and the admin API.

Implementations raise StoreError / CacheError for transport or backend
failures. Absence is never an error: ``get`` returns None.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import Decision, SubscriberRecord


class RecordStore(ABC):
    """Durable storage of subscriber records keyed by opaque id."""

    async def start(self):
        """Open connections. Optional for in-process stores."""

    async def stop(self):
        """Release connections."""

    @abstractmethod
    async def get(self, subscriber_id: str) -> Optional[SubscriberRecord]:
        ...

    @abstractmethod
    async def list_all(self) -> List[SubscriberRecord]:
        """All records ordered by created_at descending."""

    @abstractmethod
    async def upsert(self, record: SubscriberRecord) -> bool:
        """Insert, or update expiry/status/notes in place.

        Returns True when a new record was inserted. created_at of an
        existing record is never changed.
        """

    @abstractmethod
    async def delete(self, subscriber_id: str) -> bool:
        """Delete a record. Returns False when it did not exist."""

    async def health_check(self) -> bool:
        return True


class DecisionCache(ABC):
    """Key-value cache of admission decisions with per-entry expiry."""

    KEY_PREFIX = "user:"

    async def start(self):
        """Open connections. Optional for in-process caches."""

    async def stop(self):
        """Release connections."""

    @classmethod
    def key_for(cls, subscriber_id: str) -> str:
        return f"{cls.KEY_PREFIX}{subscriber_id}"

    @abstractmethod
    async def get(self, subscriber_id: str) -> Optional[Decision]:
        ...

    @abstractmethod
    async def put(self, subscriber_id: str, decision: Decision, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, subscriber_id: str) -> None:
        ...

    async def health_check(self) -> bool:
        return True
