"""
Storage layer for the threat and news feed pipeline.

This module provides data persistence using DuckDB with idempotent upserts.

Components:
- Database: Connection management and schema initialization
- UpsertGateway: Write interface consumed by the pipeline
- DuckDbUpsertGateway: Insert-or-update keyed by (source, external_id)
- UpsertError: Raised when the store rejects a record

Usage:
    from storage import Database, DuckDbUpsertGateway

    db = Database("threat_feed.duckdb")
    db.initialize_schema()

    gateway = DuckDbUpsertGateway(db)
    result = gateway.upsert(record)
    if result.inserted:
        ...
"""

from .database import Database
from .errors import UpsertError
from .gateway import DuckDbUpsertGateway, UpsertGateway, UpsertResult

__all__ = [
    "Database",
    "UpsertGateway",
    "DuckDbUpsertGateway",
    "UpsertResult",
    "UpsertError",
]
