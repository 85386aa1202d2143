#!/usr/bin/env python3
"""
Run orchestrator for the threat and news feed ingestion pipeline.

This module drives every configured source end to end:
1. Credential check: sources missing a required key are skipped
2. Fetch: one request per work unit (news category, catalog, or window)
3. Normalize + classify: raw items become canonical records or are dropped
4. Upsert: idempotent write keyed by (source, external_id)
5. Pacing: fixed delays between units and items, cooldown on 429

The orchestrator is designed to be:
- Idempotent: Safe to re-run; repeated items update in place
- Failure-tolerant: Errors are caught per item or per source and reported
- Sequential: Sources never interleave; items are written in fetch order

A run never raises to its caller. It returns the summary
{"ok": bool, "ingested": int, "errors": [...]} where ok is true when no
errors were recorded or at least one new record was ingested.

Usage:
    python run_pipeline.py [--config path/to/config.yaml] [--source nvd]
"""
import argparse
import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ingestion import (
    ADAPTER_TYPES,
    BaseAdapter,
    Credentials,
    FetchError,
    MissingCredentialError,
    RateLimitedError,
    RateLimiter,
    RatePolicy,
    build_adapter,
)
from ingestion.rate_limiter import DEFAULT_POLICIES
from observability.metrics import RunMetrics
from observability.quality_checks import QualityChecker
from observability.reporter import RunReporter
from storage.database import Database
from storage.gateway import DuckDbUpsertGateway, UpsertGateway

logger = logging.getLogger(__name__)

TRIGGERS = ("scheduled", "manual")


class IngestionPipeline:
    """
    Main pipeline orchestrator.

    State machine: Idle -> Running(source_1 -> ... -> source_N) -> Completed.
    Within a source, each raw item passes through normalize, classify and
    upsert before the next one is touched.

    Design decisions:
    - Credentials are resolved once and passed in, never read by adapters
    - Per-item failures are recorded and skipped
    - Per-source failures abandon only that source's remaining work
    - Rate limiting is delegated to RateLimiter so tests can stub sleeps
    """

    def __init__(
        self,
        config: Dict[str, Any],
        credentials: Optional[Credentials] = None,
        gateway: Optional[UpsertGateway] = None,
        adapters: Optional[List[BaseAdapter]] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize pipeline with configuration.

        Args:
            config: Parsed configuration with "sources" (and "database"
                when no gateway is supplied)
            credentials: Source credentials; read from the environment if None
            gateway: Upsert gateway; a DuckDB gateway is built from config if None
            adapters: Pre-built adapters, replacing those built from config
            rate_limiter: Pacing controller; built from config if None
        """
        if "sources" not in config:
            raise ValueError("Missing required config key: sources")

        self.config = config
        self.credentials = credentials if credentials is not None else Credentials.from_env()
        self.db: Optional[Database] = None

        if gateway is None:
            if "database" not in config:
                raise ValueError("Missing required config key: database")
            self.db = Database(config["database"]["path"])
            self.db.initialize_schema()
            gateway = DuckDbUpsertGateway(self.db)
        self.gateway = gateway

        self.adapters = adapters if adapters is not None else self._build_adapters()
        self.rate_limiter = rate_limiter or RateLimiter(self._build_rate_policies())
        self.reporter = RunReporter()
        self.last_metrics: Optional[RunMetrics] = None

        logger.info(
            "Pipeline initialized with sources: %s",
            ", ".join(adapter.source_id for adapter in self.adapters) or "none"
        )

    @classmethod
    def from_config_file(
        cls,
        config_path: str = "config.yaml",
        credentials: Optional[Credentials] = None,
    ) -> "IngestionPipeline":
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path) as f:
            config = yaml.safe_load(f) or {}

        return cls(config, credentials=credentials)

    def _build_adapters(self) -> List[BaseAdapter]:
        adapters = []
        for source_id, source_config in self.config["sources"].items():
            source_config = source_config or {}
            if source_id not in ADAPTER_TYPES:
                raise ValueError(f"Unknown source in config: sources.{source_id}")
            if not source_config.get("enabled", True):
                logger.info(f"Source {source_id} disabled in config")
                continue
            adapters.append(build_adapter(source_id, source_config, self.credentials))
        return adapters

    def _build_rate_policies(self) -> Dict[str, RatePolicy]:
        policies = {}
        for source_id, source_config in self.config["sources"].items():
            rate_config = (source_config or {}).get("rate_limit") or {}
            defaults = DEFAULT_POLICIES.get(source_id, RatePolicy())
            policies[source_id] = RatePolicy.from_config(rate_config, defaults)
        return policies

    def run(self, trigger: str = "scheduled", sources: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Execute one ingestion run.

        Scheduled and manual triggers run identical logic; the trigger is
        recorded for reporting only.

        Args:
            trigger: "scheduled" or "manual"
            sources: Optional subset of source ids to run, in configured order

        Returns:
            Run summary {"ok": bool, "ingested": int, "errors"?: [str]}
        """
        started_at = datetime.now(timezone.utc)
        run_id = f"run_{started_at.strftime('%Y%m%d_%H%M%S')}"
        metrics = RunMetrics(run_id=run_id, started_at=started_at, trigger=trigger)
        self.last_metrics = metrics

        logger.info(f"=== Starting Ingestion Run: {run_id} ({trigger}) ===")

        try:
            for adapter in self._selected_adapters(sources, metrics):
                logger.info(f"  Ingesting from {adapter.source_id}")
                self._ingest_source(adapter, metrics)
        except Exception as e:
            metrics.record_error(f"run: {type(e).__name__}: {e}")
            logger.error(f"Ingestion run failed: {e}")
            logger.debug("Full traceback:\n%s", traceback.format_exc())

        metrics.completed_at = datetime.now(timezone.utc)
        duration = (metrics.completed_at - metrics.started_at).total_seconds()

        logger.info("=== Ingestion Complete ===")
        logger.info(f"Duration: {duration:.1f}s")
        logger.info(f"Ingested: {metrics.ingested}")
        if metrics.degraded:
            logger.warning(
                "Run reported ok with %d error(s); check source health: %s",
                len(metrics.errors), "; ".join(metrics.errors)
            )
        elif not metrics.ok:
            logger.error("Run failed: %s", "; ".join(metrics.errors))

        return metrics.to_summary()

    def _selected_adapters(self, sources: Optional[List[str]], metrics: RunMetrics) -> List[BaseAdapter]:
        if not sources:
            return list(self.adapters)

        configured = {adapter.source_id for adapter in self.adapters}
        for source_id in sources:
            if source_id not in configured:
                metrics.record_error(f"{source_id}: source not configured")
        return [adapter for adapter in self.adapters if adapter.source_id in sources]

    def _ingest_source(self, adapter: BaseAdapter, metrics: RunMetrics):
        """
        Run one source to completion or abandonment.

        For each work unit:
        1. Wait the source's fixed delay (not before the first unit)
        2. Fetch raw items; on 429 cool down and move to the next unit
        3. Normalize, classify and upsert items one at a time

        Args:
            adapter: Source adapter to drive
            metrics: RunMetrics to update
        """
        source_id = adapter.source_id
        adapter.reset_health()
        self.rate_limiter.start_run(source_id)
        counts = metrics.source_counts[source_id]
        error: Optional[str] = None

        try:
            adapter.ensure_credential()

            units = adapter.work_units()
            for index, unit in enumerate(units):
                if index > 0:
                    self.rate_limiter.wait_before_next(source_id)

                try:
                    raw_items = adapter.fetch_batch(unit)
                except RateLimitedError as e:
                    if index == len(units) - 1:
                        # Nothing left to cool down for
                        logger.warning(f"  {source_id} rate limited on its last unit ({unit})")
                        error = f"{source_id}: rate limited, remaining work abandoned"
                        break
                    if self.rate_limiter.cooldown(source_id, e.retry_after):
                        error = (
                            f"{source_id}: rate limited {self.rate_limiter.rate_limit_hits(source_id)} "
                            f"times, remaining work abandoned"
                        )
                        break
                    continue

                adapter.mark_fetched(len(raw_items))
                logger.info(f"    {unit}: {len(raw_items)} items")

                for position, raw_item in enumerate(raw_items):
                    if position > 0:
                        self.rate_limiter.pause_between_items(source_id)
                    self._ingest_item(adapter, raw_item, unit, metrics)

        except MissingCredentialError as e:
            error = f"{source_id}: {e}"
            logger.warning(f"  Skipping {source_id}: {e}")
        except FetchError as e:
            error = f"{source_id} fetch: {e}"
            logger.error(f"  Error ingesting from {source_id}: {e}")
        except Exception as e:
            error = f"{source_id}: {type(e).__name__}: {e}"
            logger.error(f"  Unexpected error ingesting from {source_id}: {e}")
            logger.debug("Full traceback:\n%s", traceback.format_exc())

        if error:
            adapter.mark_failed(error)
            metrics.record_error(error)

        health = adapter.get_health()
        metrics.source_health[source_id] = {
            "healthy": health.is_healthy,
            "records": health.records_fetched,
            "error": health.error_message
        }

        logger.info(
            f"    {source_id}: {counts['inserted']} inserted, {counts['updated']} updated, "
            f"{counts['dropped']} dropped, {counts['failed']} failed"
        )

    def _ingest_item(self, adapter: BaseAdapter, raw_item: Any, unit: str, metrics: RunMetrics):
        source_id = adapter.source_id
        metrics.record_item(source_id, "fetched")

        try:
            record = adapter.normalize(raw_item, unit)
        except Exception as e:
            metrics.record_item(source_id, "failed")
            metrics.record_error(f"{source_id} normalize: {type(e).__name__}: {e}")
            logger.debug("Full traceback:\n%s", traceback.format_exc())
            return

        if record is None:
            metrics.record_item(source_id, "dropped")
            return

        try:
            result = self.gateway.upsert(record)
        except Exception as e:
            metrics.record_item(source_id, "failed")
            metrics.record_error(f"{source_id} upsert {record.external_id}: {e}")
            logger.warning(f"    Upsert failed for {record.external_id}: {e}")
            return

        metrics.record_item(source_id, "inserted" if result.inserted else "updated")

    def write_report(self, output_dir: Path) -> Optional[Path]:
        """
        Write a Markdown report for the last run.

        Quality checks are included when the pipeline owns a database.
        """
        if self.last_metrics is None:
            return None

        quality_results = QualityChecker(self.db).run_all_checks() if self.db else None
        report = self.reporter.generate_report(self.last_metrics, quality_results)
        return self.reporter.save_report(report, output_dir)

    def close(self):
        if self.db:
            self.db.close()


def main():
    """CLI entry point for manual runs."""
    parser = argparse.ArgumentParser(
        description="Run the threat and news feed ingestion pipeline"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--source",
        action="append",
        choices=sorted(ADAPTER_TYPES),
        help="Only run this source (repeatable; default: all enabled sources)"
    )
    parser.add_argument(
        "--trigger",
        default="manual",
        choices=TRIGGERS,
        help="Who triggered the run (default: manual)"
    )
    parser.add_argument(
        "--report-dir",
        type=Path,
        help="Write a Markdown run report into this directory"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        pipeline = IngestionPipeline.from_config_file(args.config)
    except Exception as e:
        logger.error(f"Pipeline setup failed: {e}")
        sys.exit(2)

    try:
        summary = pipeline.run(trigger=args.trigger, sources=args.source)
        if args.report_dir:
            report_path = pipeline.write_report(args.report_dir)
            logger.info(f"Report: {report_path}")
    finally:
        pipeline.close()

    print(json.dumps(summary, indent=2))
    sys.exit(0 if summary["ok"] else 1)


if __name__ == "__main__":
    main()
