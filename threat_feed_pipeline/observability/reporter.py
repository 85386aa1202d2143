"""
Markdown run reports for operators.

RunReporter renders one ingestion run (its RunMetrics plus optional quality
check results) as a Markdown document.

Report sections:
- Header with run metadata (ID, trigger, timestamp, duration)
- Summary table with the run summary fields
- Degraded-run warning when ok is reported despite errors
- Per-source item counts and health
- Errors recorded during the run
- Data quality check results

Design decisions:
- Tables are rendered with tabulate in GitHub-flavored Markdown
- Reports are written only when an output directory is requested
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from .metrics import SOURCE_COUNTERS, RunMetrics
from .quality_checks import QualityCheckResult


class RunReporter:
    """Renders RunMetrics as Markdown that also reads fine as plain text."""

    def generate_report(
        self,
        metrics: RunMetrics,
        quality_results: Optional[List[QualityCheckResult]] = None
    ) -> str:
        """
        Render the report for a finished run.

        Args:
            metrics: Metrics of the run to describe
            quality_results: Optional quality check results to append

        Returns:
            Report text
        """
        lines = []

        # Header
        lines.append("# Ingestion Run Report")
        lines.append(f"**Run ID:** {metrics.run_id}")
        lines.append(f"**Trigger:** {metrics.trigger}")
        lines.append(f"**Started:** {metrics.started_at.isoformat()}")
        if metrics.completed_at:
            duration = (metrics.completed_at - metrics.started_at).total_seconds()
            lines.append(f"**Duration:** {duration:.1f} seconds")
        lines.append("")

        # Summary table
        lines.append("## Summary")
        summary_data = [
            ["OK", metrics.ok],
            ["Ingested (new)", metrics.ingested],
            ["Errors", len(metrics.errors)],
        ]
        lines.append(tabulate(summary_data, headers=["Metric", "Value"], tablefmt="github"))
        lines.append("")

        if metrics.degraded:
            lines.append(
                f"> **Degraded run:** reported ok because {metrics.ingested} record(s) were "
                f"ingested, but {len(metrics.errors)} error(s) were recorded."
            )
            lines.append("")

        # Per-source counts
        if metrics.source_counts or metrics.source_health:
            lines.append("## Sources")
            source_data = []
            for source in sorted(set(metrics.source_counts) | set(metrics.source_health)):
                health = metrics.source_health.get(source, {})
                status = "✓" if health.get("healthy", False) else "✗"
                counts = metrics.source_counts.get(source, {})
                source_data.append([status, source] + [counts.get(name, 0) for name in SOURCE_COUNTERS])
            headers = ["Status", "Source"] + [name.capitalize() for name in SOURCE_COUNTERS]
            lines.append(tabulate(source_data, headers=headers, tablefmt="github"))
            lines.append("")

        # Errors
        if metrics.errors:
            lines.append("## Errors")
            for error in metrics.errors:
                lines.append(f"- {error}")
            lines.append("")

        # Quality checks
        if quality_results:
            lines.append("## Data Quality Checks")
            quality_data = []
            for qr in quality_results:
                status = "✓" if qr.passed else "✗"
                quality_data.append([status, qr.check_name, qr.message])
            lines.append(tabulate(quality_data, headers=["Status", "Check", "Details"], tablefmt="github"))
            lines.append("")

        return "\n".join(lines)

    def save_report(self, report: str, output_dir: Path) -> Path:
        """
        Write a report as run-report-<UTC timestamp>.md.

        Args:
            report: Report text
            output_dir: Target directory, created if missing

        Returns:
            Path of the written file
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        filepath = output_dir / f"run-report-{timestamp}.md"
        filepath.write_text(report, encoding="utf-8")
        return filepath
