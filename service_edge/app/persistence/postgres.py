"""
PostgreSQL record store for subscriber records.
"""

import asyncio
from typing import List, Optional

import asyncpg

from shared.logging import get_logger
from shared.errors import StoreError

from ..contracts import RecordStore
from ..models import SubscriberRecord, SubscriberStatus

# Driver, transport and command_timeout failures.
DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class PostgreSQLRecordStore(RecordStore):
    """PostgreSQL persistence layer for subscriber records.

    Every failure surfaces as StoreError; callers decide whether that is a
    500 (admin API) or a fail-closed denial (admission gate).
    """

    def __init__(self, dsn: str, pool: Optional[asyncpg.Pool] = None):
        self.dsn = dsn
        self.logger = get_logger("edge.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = pool

    async def start(self):
        """Start the persistence layer."""
        try:
            if self.pool is None:
                self.pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=2,
                    max_size=10,
                    command_timeout=30
                )

            await self._create_tables()

        except DATABASE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL record store", error=str(e))
            raise StoreError(f"PostgreSQL unavailable: {e}")

        self.logger.info("PostgreSQL record store started")

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL record store stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self._require_pool().acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    expiration_timestamp BIGINT NOT NULL,
                    status TEXT NOT NULL,
                    notes TEXT,
                    created_at BIGINT NOT NULL
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at DESC);
            """)

    async def get(self, subscriber_id: str) -> Optional[SubscriberRecord]:
        """Load a record; None when absent."""
        try:
            async with self._require_pool().acquire() as conn:
                row = await conn.fetchrow("""
                    SELECT id, expiration_timestamp, status, notes, created_at
                    FROM users WHERE id = $1
                """, subscriber_id)
        except DATABASE_ERRORS as e:
            self.logger.error("Error loading subscriber", subscriber_id=subscriber_id, error=str(e))
            raise StoreError(str(e))

        return self._row_to_record(row) if row else None

    async def list_all(self) -> List[SubscriberRecord]:
        """Load all records, newest first."""
        try:
            async with self._require_pool().acquire() as conn:
                rows = await conn.fetch("""
                    SELECT id, expiration_timestamp, status, notes, created_at
                    FROM users ORDER BY created_at DESC
                """)
        except DATABASE_ERRORS as e:
            self.logger.error("Error listing subscribers", error=str(e))
            raise StoreError(str(e))

        return [self._row_to_record(row) for row in rows]

    async def upsert(self, record: SubscriberRecord) -> bool:
        """Insert or update in place, keeping created_at. True when inserted."""
        try:
            async with self._require_pool().acquire() as conn:
                inserted = await conn.fetchval("""
                    INSERT INTO users (id, expiration_timestamp, status, notes, created_at)
                    VALUES ($1, $2, $3, $4, $5)
                    ON CONFLICT (id) DO UPDATE SET
                        expiration_timestamp = EXCLUDED.expiration_timestamp,
                        status = EXCLUDED.status,
                        notes = EXCLUDED.notes
                    RETURNING (xmax = 0)
                """,
                    record.id, record.expiration_timestamp, record.status.value,
                    record.notes, record.created_at
                )
        except DATABASE_ERRORS as e:
            self.logger.error("Error saving subscriber", subscriber_id=record.id, error=str(e))
            raise StoreError(str(e))

        self.logger.info("Subscriber saved", subscriber_id=record.id, inserted=bool(inserted))
        return bool(inserted)

    async def delete(self, subscriber_id: str) -> bool:
        """Delete a record. False when it did not exist."""
        try:
            async with self._require_pool().acquire() as conn:
                result = await conn.execute("""
                    DELETE FROM users WHERE id = $1
                """, subscriber_id)
        except DATABASE_ERRORS as e:
            self.logger.error("Error deleting subscriber", subscriber_id=subscriber_id, error=str(e))
            raise StoreError(str(e))

        if result == "DELETE 1":
            self.logger.info("Subscriber deleted", subscriber_id=subscriber_id)
            return True

        self.logger.info("Subscriber not found for deletion", subscriber_id=subscriber_id)
        return False

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreError("Record store is not started")
        return self.pool

    def _row_to_record(self, row) -> SubscriberRecord:
        """Convert database row to SubscriberRecord."""
        return SubscriberRecord(
            id=row['id'],
            expiration_timestamp=int(row['expiration_timestamp']),
            status=SubscriberStatus(row['status']),
            notes=row['notes'],
            created_at=int(row['created_at'])
        )

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self._require_pool().acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False
