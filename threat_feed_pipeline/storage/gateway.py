"""
Upsert gateway: the content store's write path for ingested records.

Each write is an insert-or-update keyed by (source, external_id):
- First sighting of a key inserts a row and reports inserted=True
- Later sightings refresh every field in place and report inserted=False
- Nothing is ever appended or deleted

Any database error surfaces as UpsertError so the orchestrator can record
it against the single item and carry on.
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import duckdb

from classification import Severity
from ingestion.base_adapter import CanonicalRecord
from .database import Database
from .errors import UpsertError

RECORD_COLUMNS = [
    "source", "external_id", "title", "description", "severity", "category",
    "published_at", "url", "cve_ids", "affected", "tags", "raw",
    "first_ingested_at", "last_ingested_at",
]
JSON_COLUMNS = {"cve_ids", "affected", "tags", "raw"}


@dataclass
class UpsertResult:
    inserted: bool


class UpsertGateway(ABC):
    """Idempotent write interface consumed by the pipeline."""

    @abstractmethod
    def upsert(self, record: CanonicalRecord) -> UpsertResult:
        """
        Insert or update a record by (source, external_id).

        Raises:
            UpsertError: If the store rejects the record
        """
        pass


class DuckDbUpsertGateway(UpsertGateway):
    """
    Upsert gateway backed by the ingested_records DuckDB table.

    Also exposes the read helpers downstream consumers use to list the
    latest records.
    """

    def __init__(self, database: Database):
        """
        Initialize gateway with database connection.

        Args:
            database: Database instance with schema initialized
        """
        self.db = database

    def upsert(self, record: CanonicalRecord) -> UpsertResult:
        if not record.source or not record.external_id:
            raise UpsertError("source and external_id are required")
        if not record.title:
            raise UpsertError(f"empty title for {record.external_id}")

        conn = self.db.connect()
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        severity = Severity.coerce(record.severity).value
        published_at = max(0, int(record.published_at))

        try:
            existing = conn.execute(
                "SELECT 1 FROM ingested_records WHERE source = ? AND external_id = ?",
                [record.source, record.external_id],
            ).fetchone()

            if existing:
                conn.execute("""
                    UPDATE ingested_records
                    SET title = ?, description = ?, severity = ?, category = ?,
                        published_at = ?, url = ?, cve_ids = ?, affected = ?,
                        tags = ?, raw = ?, last_ingested_at = ?
                    WHERE source = ? AND external_id = ?
                """, [
                    record.title,
                    record.description,
                    severity,
                    record.category,
                    published_at,
                    record.url,
                    json.dumps(record.cve_ids),
                    json.dumps(record.affected),
                    json.dumps(record.tags),
                    json.dumps(record.raw, default=str),
                    now,
                    record.source,
                    record.external_id,
                ])
                return UpsertResult(inserted=False)

            conn.execute(f"""
                INSERT INTO ingested_records ({", ".join(RECORD_COLUMNS)})
                VALUES ({", ".join("?" for _ in RECORD_COLUMNS)})
            """, [
                record.source,
                record.external_id,
                record.title,
                record.description,
                severity,
                record.category,
                published_at,
                record.url,
                json.dumps(record.cve_ids),
                json.dumps(record.affected),
                json.dumps(record.tags),
                json.dumps(record.raw, default=str),
                now,
                now,
            ])
            return UpsertResult(inserted=True)

        except duckdb.Error as e:
            raise UpsertError(f"{type(e).__name__}: {e}") from e

    def get(self, source: str, external_id: str) -> Optional[Dict[str, Any]]:
        conn = self.db.connect()
        row = conn.execute(
            f"SELECT {', '.join(RECORD_COLUMNS)} FROM ingested_records WHERE source = ? AND external_id = ?",
            [source, external_id],
        ).fetchone()
        return self._row_to_dict(row) if row else None

    def count(self, source: Optional[str] = None) -> int:
        conn = self.db.connect()
        if source:
            return conn.execute(
                "SELECT count(*) FROM ingested_records WHERE source = ?", [source]
            ).fetchone()[0]
        return conn.execute("SELECT count(*) FROM ingested_records").fetchone()[0]

    def list_latest(self, limit: int = 50, severity: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Return the most recently published records, newest first.

        Args:
            limit: Maximum rows, clamped to [1, 200]
            severity: Optional severity filter
        """
        limit = min(max(int(limit), 1), 200)
        conn = self.db.connect()
        columns = ", ".join(RECORD_COLUMNS)

        if severity:
            rows = conn.execute(f"""
                SELECT {columns} FROM ingested_records
                WHERE severity = ?
                ORDER BY published_at DESC
                LIMIT ?
            """, [Severity.coerce(severity).value, limit]).fetchall()
        else:
            rows = conn.execute(f"""
                SELECT {columns} FROM ingested_records
                ORDER BY published_at DESC
                LIMIT ?
            """, [limit]).fetchall()

        return [self._row_to_dict(row) for row in rows]

    @staticmethod
    def _row_to_dict(row) -> Dict[str, Any]:
        record = dict(zip(RECORD_COLUMNS, row))
        for column in JSON_COLUMNS:
            value = record.get(column)
            if isinstance(value, str):
                record[column] = json.loads(value)
        return record
