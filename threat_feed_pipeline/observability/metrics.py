"""
Metrics collection for pipeline runs.

This module provides RunMetrics, a dataclass that tracks all observability
metrics for a single ingestion run including:
- Per-source counts of fetched, dropped, inserted, updated and failed items
- Source health indicators
- The error strings that make up the run summary

Design decisions:
- Single metrics object per run for simplicity
- Defaultdict used for automatic initialization of per-source counters
- to_summary() is the operator-facing contract: {ok, ingested, errors?}
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

SOURCE_COUNTERS = ("fetched", "dropped", "inserted", "updated", "failed")


def _new_counters() -> Dict[str, int]:
    return {name: 0 for name in SOURCE_COUNTERS}


@dataclass
class RunMetrics:
    """
    Metrics for a single pipeline run.

    Tracks per-source item outcomes, source health, and error strings.
    """
    run_id: str
    started_at: datetime
    trigger: str = "scheduled"
    completed_at: Optional[datetime] = None

    # Key: source_id, Value: counters (fetched, dropped, inserted, updated, failed)
    source_counts: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(_new_counters))

    # Key: source_id, Value: dict with health status
    source_health: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    errors: List[str] = field(default_factory=list)

    def record_item(self, source_id: str, outcome: str):
        """
        Record the outcome of one raw item.

        Args:
            source_id: Source the item came from
            outcome: One of fetched | dropped | inserted | updated | failed
        """
        self.source_counts[source_id][outcome] += 1

    def record_error(self, error: str):
        self.errors.append(error)

    @property
    def ingested(self) -> int:
        """Records newly inserted in this run."""
        return sum(counts["inserted"] for counts in self.source_counts.values())

    @property
    def ok(self) -> bool:
        # Forward progress counts as success even when some sources failed
        return not self.errors or self.ingested > 0

    @property
    def degraded(self) -> bool:
        """True when the run reports ok while errors were recorded."""
        return self.ok and bool(self.errors)

    def to_summary(self) -> Dict[str, Any]:
        """
        Build the run summary returned to callers.

        Returns:
            {"ok": bool, "ingested": int} plus "errors" when any were recorded
        """
        summary: Dict[str, Any] = {"ok": self.ok, "ingested": self.ingested}
        if self.errors:
            summary["errors"] = list(self.errors)
        return summary

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert metrics to dictionary for JSON serialization.

        Returns:
            Dictionary representation including per-source detail
        """
        return {
            "run_id": self.run_id,
            "trigger": self.trigger,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "ok": self.ok,
            "degraded": self.degraded,
            "ingested": self.ingested,
            "source_counts": {source: dict(counts) for source, counts in self.source_counts.items()},
            "source_health": self.source_health,
            "errors": list(self.errors),
        }
