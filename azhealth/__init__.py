"""Azure resource health report.

Collects inventory, Resource Health status, activity logs and Azure Monitor
metrics for a subscription or resource group, applies a fixed rule set, and
writes a static HTML report.

The entry point is :func:`~azhealth.pipeline.run_health_report`; the
``azure-health-report`` console script wraps it.
"""

from azhealth.analyzer import analyze
from azhealth.config import ReportConfig
from azhealth.errors import (
    ArmRequestError,
    AuthenticationFailedError,
    FatalError,
    HealthReportError,
    InventoryError,
)
from azhealth.models import HealthRecord, Issue, LogEntry, MetricPoint, MetricSeries, Report, ResourceRef
from azhealth.pipeline import run_health_report
from azhealth.reporter import render_report_html, write_report

__all__ = [
    "ArmRequestError",
    "AuthenticationFailedError",
    "FatalError",
    "HealthRecord",
    "HealthReportError",
    "InventoryError",
    "Issue",
    "LogEntry",
    "MetricPoint",
    "MetricSeries",
    "Report",
    "ReportConfig",
    "ResourceRef",
    "analyze",
    "render_report_html",
    "run_health_report",
    "write_report",
]
