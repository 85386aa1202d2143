"""
Lightweight tests for storage layer.

These tests validate core functionality without heavy mocking:
- Database schema initialization
- Insert-or-update keyed by (source, external_id)
- Idempotent re-ingestion
- Latest-records queries
"""
import pytest

from classification import Severity
from ingestion.base_adapter import CanonicalRecord
from storage import UpsertError


def make_record(**overrides) -> CanonicalRecord:
    fields = dict(
        source="nvd",
        external_id="CVE-2024-0001",
        title="CVE-2024-0001",
        description="Buffer overflow",
        severity=Severity.HIGH,
        category="NVD CVE",
        published_at=1_700_000_000_000,
        url="https://nvd.nist.gov/vuln/detail/CVE-2024-0001",
        cve_ids=["CVE-2024-0001"],
        affected=["example:example-lib"],
        tags=["cve"],
        raw={"cveId": "CVE-2024-0001"},
    )
    fields.update(overrides)
    return CanonicalRecord(**fields)


def test_database_initialization(temp_db):
    """Verify database schema is created correctly."""
    conn = temp_db.connect()

    tables = conn.execute("""
        SELECT table_name FROM information_schema.tables
        WHERE table_schema = 'main'
    """).fetchall()

    assert "ingested_records" in {t[0] for t in tables}


def test_initialize_schema_is_repeatable(temp_db):
    temp_db.initialize_schema()
    temp_db.initialize_schema()


def test_first_upsert_inserts(gateway):
    result = gateway.upsert(make_record())

    assert result.inserted is True
    stored = gateway.get("nvd", "CVE-2024-0001")
    assert stored["title"] == "CVE-2024-0001"
    assert stored["severity"] == "high"
    assert stored["cve_ids"] == ["CVE-2024-0001"]
    assert stored["affected"] == ["example:example-lib"]
    assert stored["raw"] == {"cveId": "CVE-2024-0001"}


def test_second_upsert_updates_in_place(gateway):
    gateway.upsert(make_record())
    first = gateway.get("nvd", "CVE-2024-0001")

    result = gateway.upsert(make_record(severity=Severity.CRITICAL, description="Updated"))

    assert result.inserted is False
    assert gateway.count() == 1
    stored = gateway.get("nvd", "CVE-2024-0001")
    assert stored["severity"] == "critical"
    assert stored["description"] == "Updated"
    assert stored["first_ingested_at"] == first["first_ingested_at"]
    assert stored["last_ingested_at"] >= first["last_ingested_at"]


def test_same_external_id_in_different_sources(gateway):
    """The idempotency key is the pair, not the id alone."""
    assert gateway.upsert(make_record(source="nvd")).inserted
    assert gateway.upsert(make_record(source="cisa_kev", category="CISA KEV")).inserted
    assert gateway.count() == 2
    assert gateway.count("cisa_kev") == 1


def test_repeated_upserts_are_idempotent(gateway):
    for _ in range(3):
        gateway.upsert(make_record())
    assert gateway.count() == 1


def test_empty_title_rejected(gateway):
    with pytest.raises(UpsertError):
        gateway.upsert(make_record(title=""))
    assert gateway.count() == 0


def test_missing_key_rejected(gateway):
    with pytest.raises(UpsertError):
        gateway.upsert(make_record(external_id=""))


def test_negative_published_at_is_floored(gateway):
    gateway.upsert(make_record(published_at=-5))
    assert gateway.get("nvd", "CVE-2024-0001")["published_at"] == 0


def test_list_latest_orders_and_filters(gateway):
    gateway.upsert(make_record(external_id="CVE-2024-0001", published_at=1_000, severity=Severity.LOW))
    gateway.upsert(make_record(external_id="CVE-2024-0002", published_at=3_000, severity=Severity.CRITICAL))
    gateway.upsert(make_record(external_id="CVE-2024-0003", published_at=2_000, severity=Severity.CRITICAL))

    latest = gateway.list_latest(limit=2)
    assert [r["external_id"] for r in latest] == ["CVE-2024-0002", "CVE-2024-0003"]

    critical = gateway.list_latest(severity="critical")
    assert {r["external_id"] for r in critical} == {"CVE-2024-0002", "CVE-2024-0003"}

    # Limit is clamped to at least one row
    assert len(gateway.list_latest(limit=0)) == 1


def test_get_missing_returns_none(gateway):
    assert gateway.get("nvd", "CVE-1999-0001") is None
