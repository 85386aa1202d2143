"""
Database connection and schema management for the ingestion pipeline.

This module provides:
- A lazily opened DuckDB connection
- The ingested_records table written by the upsert gateway

Design decisions:
- Composite primary key (source, external_id) is the idempotency key
- JSON columns for list fields and raw payloads
- Records are never deleted by the pipeline
"""
import duckdb
from typing import Optional


class Database:
    """
    Owns the DuckDB connection and the ingested_records schema.

    This class is responsible for:
    - Opening one connection on first use and reusing it
    - Initializing the ingested_records table and its indexes
    """

    def __init__(self, db_path: str = "threat_feed.duckdb"):
        """
        Initialize database manager.

        Args:
            db_path: Path to DuckDB database file (created if doesn't exist)
        """
        self.db_path = db_path
        self.conn: Optional[duckdb.DuckDBPyConnection] = None

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create database connection.

        Returns:
            Active DuckDB connection
        """
        if self.conn is None:
            self.conn = duckdb.connect(self.db_path)
        return self.conn

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def initialize_schema(self):
        """Create the ingested_records table and indexes if they don't exist."""
        conn = self.connect()

        conn.execute("""
            CREATE TABLE IF NOT EXISTS ingested_records (
                source VARCHAR NOT NULL,
                external_id VARCHAR NOT NULL,
                title VARCHAR NOT NULL,
                description VARCHAR,
                severity VARCHAR NOT NULL
                    CHECK (severity IN ('critical', 'high', 'medium', 'low')),
                category VARCHAR,
                published_at BIGINT NOT NULL,
                url VARCHAR,
                cve_ids JSON,
                affected JSON,
                tags JSON,
                raw JSON,
                first_ingested_at TIMESTAMP NOT NULL,
                last_ingested_at TIMESTAMP NOT NULL,
                PRIMARY KEY (source, external_id)
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_records_published
            ON ingested_records(published_at)
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_records_severity
            ON ingested_records(severity, published_at)
        """)

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
