"""
Data quality checks for stored records.

QualityChecker inspects the ingested_records table when a run report is
requested, catching rows that slipped past normalization.

Checks implemented:
- Severity domain: Every record carries one of the four severity levels
- Published timestamps: published_at is never negative
- Title completeness: Every record has a non-empty title
- CVE format: CVE ids in vulnerability records match CVE-YYYY-NNNN+
- Stale vulnerability feeds: A vulnerability source that stopped refreshing

Every check is a single aggregate query and yields one QualityCheckResult.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional


@dataclass
class QualityCheckResult:
    """
    Outcome of one check.

    Attributes:
        check_name: Stable check identifier used in reports
        passed: Whether no offending rows were found
        message: One-line summary for the report table
        details: Offending row counts or source names
    """
    check_name: str
    passed: bool
    message: str
    details: Optional[Dict[str, Any]] = None


class QualityChecker:
    """Read-only checks over stored records."""

    def __init__(self, database, stale_after_days: int = 7):
        """
        Initialize quality checker.

        Args:
            database: Database holding the ingested_records table
            stale_after_days: Age after which a vulnerability feed is stale
        """
        self.db = database
        self.stale_after_days = stale_after_days

    def run_all_checks(self) -> List[QualityCheckResult]:
        """
        Run every check in a fixed order.

        Returns:
            Five results, one per check
        """
        return [
            self.check_severity_domain(),
            self.check_published_at_non_negative(),
            self.check_title_completeness(),
            self.check_cve_format(),
            self.check_stale_vulnerability_feeds(),
        ]

    def check_severity_domain(self) -> QualityCheckResult:
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM ingested_records
            WHERE severity IS NULL
               OR severity NOT IN ('critical', 'high', 'medium', 'low')
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="severity_domain",
            passed=result == 0,
            message=f"{result} records with invalid severity" if result > 0 else "All severities valid",
            details={"invalid_count": result}
        )

    def check_published_at_non_negative(self) -> QualityCheckResult:
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM ingested_records
            WHERE published_at IS NULL OR published_at < 0
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="published_at_non_negative",
            passed=result == 0,
            message=f"{result} records with invalid published_at" if result > 0 else "All timestamps valid",
            details={"invalid_count": result}
        )

    def check_title_completeness(self) -> QualityCheckResult:
        """Titles are what readers see; an empty one is a display bug."""
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM ingested_records
            WHERE title IS NULL OR trim(title) = ''
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="title_completeness",
            passed=result == 0,
            message=f"{result} records missing title" if result > 0 else "All records have titles",
            details={"missing_count": result}
        )

    def check_cve_format(self) -> QualityCheckResult:
        """
        Check that vulnerability external ids match CVE-YYYY-NNNN+.

        Uses regexp_full_match for format validation.
        """
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM ingested_records
            WHERE source IN ('nvd', 'cisa_kev')
              AND NOT regexp_full_match(external_id, 'CVE-[0-9]{4}-[0-9]{4,}')
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="cve_format",
            passed=result == 0,
            message=f"{result} invalid CVE formats" if result > 0 else "All CVE IDs valid",
            details={"invalid_count": result}
        )

    def check_stale_vulnerability_feeds(self) -> QualityCheckResult:
        """
        Detect vulnerability sources that stopped refreshing.

        Passes when a source has no rows at all (never configured) or at
        least one row refreshed within stale_after_days.
        """
        conn = self.db.connect()
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=self.stale_after_days)
        rows = conn.execute("""
            SELECT source, max(last_ingested_at) < ?
            FROM ingested_records
            WHERE source IN ('nvd', 'cisa_kev')
            GROUP BY source
        """, [cutoff]).fetchall()
        stale = sorted(row[0] for row in rows if row[1])

        return QualityCheckResult(
            check_name="stale_vulnerability_feeds",
            passed=not stale,
            message=f"Stale sources: {', '.join(stale)}" if stale else "Vulnerability feeds fresh",
            details={"stale_sources": stale}
        )
