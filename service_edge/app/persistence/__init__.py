"""
Persistence package for the Edge Gateway Service.

PostgreSQL is the durable record store; only the admin API mutates it.
"""

from .postgres import PostgreSQLRecordStore

__all__ = ["PostgreSQLRecordStore"]
