from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Tuple

from azhealth.analyzer import analyze, find_unreferenced_issues
from azhealth.arm_client import ArmConfig, AzureArmClient
from azhealth.collector import StopFn, collect_health, collect_logs, collect_metrics, summarize
from azhealth.config import ReportConfig
from azhealth.inventory import list_resources
from azhealth.models import CollectionResult, Report
from azhealth.reporter import write_report
from azhealth.timeutil import utc, utc_now


logger = logging.getLogger("azhealth.pipeline")


def build_stop_fn(
    max_runtime_seconds: Optional[float],
    should_stop: Optional[StopFn] = None,
    *,
    time_fn: Callable[[], float] = time.monotonic,
) -> StopFn:
    deadline = time_fn() + max_runtime_seconds if max_runtime_seconds else None

    def _stop() -> bool:
        if should_stop is not None and should_stop():
            return True
        return deadline is not None and time_fn() >= deadline

    return _stop


def _scope_label(subscription_id: str, resource_group: Optional[str]) -> str:
    if resource_group:
        return f"subscription {subscription_id} / resource group {resource_group}"
    return f"subscription {subscription_id}"


def run_health_report(
    cfg: ReportConfig,
    *,
    arm: Optional[Any] = None,
    credential: Optional[Any] = None,
    now: Optional[datetime] = None,
    should_stop: Optional[StopFn] = None,
) -> Report:
    """
    Runs connect → inventory → health → logs → metrics → analyze → report, in order.

    Authentication and inventory failures raise FatalError subclasses. Per-resource
    failures only add warnings. Ctrl-C or the runtime budget ends collection early
    and the report is written from whatever was gathered.
    """
    end = utc(now or utc_now())
    start = end - timedelta(days=cfg.days)
    stop = build_stop_fn(cfg.max_runtime_seconds, should_stop)

    owns_arm = arm is None
    if arm is None:
        arm = AzureArmClient(
            ArmConfig(
                subscription_id=cfg.subscription_id,
                timeout_seconds=cfg.timeout_seconds,
                allow_interactive=cfg.allow_interactive,
            ),
            credential=credential,
        )

    try:
        logger.info("Connecting to Azure...")
        subscription_id = arm.authenticate()
        logger.info("Connected: subscription=%s", subscription_id)

        logger.info("Listing resources: resource_group=%s", cfg.resource_group or "*")
        result = CollectionResult(resources=list_resources(arm, resource_group=cfg.resource_group))

        stages: List[Tuple[str, Callable[[], None]]] = [
            (
                "health status",
                lambda: collect_health(arm, result, should_stop=stop, max_workers=cfg.max_workers),
            ),
            (
                "activity logs",
                lambda: collect_logs(
                    arm, result, start=start, end=end, should_stop=stop, max_workers=cfg.max_workers
                ),
            ),
            (
                "metrics",
                lambda: collect_metrics(
                    arm,
                    result,
                    start=start,
                    end=end,
                    interval=cfg.metric_interval,
                    should_stop=stop,
                    max_workers=cfg.max_workers,
                ),
            ),
        ]
        for label, run_stage in stages:
            if result.cancelled:
                logger.warning("Skipping %s collection (run stopped early).", label)
                continue
            logger.info("Collecting %s: resources=%s days=%s", label, len(result.resources), cfg.days)
            try:
                run_stage()
            except KeyboardInterrupt:
                logger.warning("Interrupted while collecting %s; generating partial report.", label)
                result.cancelled = True

        logger.info("Collection summary: %s", summarize(result))

        logger.info("Analyzing collected data...")
        issues = analyze(result.health_records, result.log_entries, result.metric_series)
        orphans = find_unreferenced_issues(result.health_records, issues)
        if orphans:
            logger.info(
                "Issues referencing resources without a health record: count=%s names=%s",
                len(orphans),
                sorted({issue.resource_name for issue in orphans})[:10],
            )

        report = Report(
            generated_at=end if now is not None else utc_now(),
            health_records=tuple(result.health_records),
            issues=tuple(issues),
            scope=_scope_label(subscription_id, cfg.resource_group),
            warnings=tuple(result.warnings),
            partial=result.cancelled,
        )

        logger.info("Generating HTML report...")
        path = write_report(report, cfg.output_path)
        logger.info("Health report generated: %s", path.resolve())
        return report
    finally:
        if owns_arm:
            arm.close()
