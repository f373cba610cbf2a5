from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from azhealth.models import (
    AVAILABLE,
    ISSUE_ERROR,
    ISSUE_HEALTH,
    ISSUE_PERFORMANCE,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    HealthRecord,
    Issue,
    LogEntry,
    MetricSeries,
    resource_name_from_id,
)


ERROR_LEVEL = "Error"
SPIKE_FACTOR = 2.0

HEALTH_ACTION = "Check the Resource Health blade and recent service events for this resource."
ERROR_ACTION = "Review the activity log entry and resolve the failing operation."
PERFORMANCE_ACTION = "Investigate the metric spike and consider scaling or tuning the resource."


def _health_issues(records: Sequence[HealthRecord]) -> List[Issue]:
    return [
        Issue(
            resource_name=record.resource_name,
            issue_type=ISSUE_HEALTH,
            severity=SEVERITY_HIGH,
            description=f"Resource is in {record.availability_state} state",
            recommended_action=HEALTH_ACTION,
        )
        for record in records
        if record.availability_state != AVAILABLE
    ]


def _error_issues(entries: Sequence[LogEntry]) -> List[Issue]:
    issues: List[Issue] = []
    for entry in entries:
        if entry.level != ERROR_LEVEL:
            continue
        description = entry.content.strip()
        if not description:
            when = entry.timestamp.isoformat() if entry.timestamp else "unknown time"
            description = f"Error event logged at {when}"
        issues.append(
            Issue(
                resource_name=resource_name_from_id(entry.resource_id),
                issue_type=ISSUE_ERROR,
                severity=SEVERITY_MEDIUM,
                description=description,
                recommended_action=ERROR_ACTION,
            )
        )
    return issues


def series_mean_and_peak(series: MetricSeries) -> Optional[Tuple[float, float]]:
    """Mean of the averages and max of the maxima; None when either is empty."""
    averages = [p.average for p in series.data_points if p.average is not None]
    maxima = [p.maximum for p in series.data_points if p.maximum is not None]
    if not averages or not maxima:
        return None
    return sum(averages) / len(averages), max(maxima)


def _performance_issues(series_list: Sequence[MetricSeries]) -> List[Issue]:
    issues: List[Issue] = []
    for series in series_list:
        stats = series_mean_and_peak(series)
        if stats is None:
            continue
        mean, peak = stats
        if peak > SPIKE_FACTOR * mean:
            issues.append(
                Issue(
                    resource_name=series.resource_name,
                    issue_type=ISSUE_PERFORMANCE,
                    severity=SEVERITY_LOW,
                    description=f"Unusual spike detected in metric {series.metric_name}",
                    recommended_action=PERFORMANCE_ACTION,
                )
            )
    return issues


def analyze(
    health_records: Sequence[HealthRecord],
    log_entries: Sequence[LogEntry],
    metric_series: Sequence[MetricSeries],
) -> List[Issue]:
    """
    Applies the health, error-log and metric-anomaly rules independently.

    Issues come out grouped by rule in that order; nothing is deduplicated.
    """
    issues: List[Issue] = []
    issues.extend(_health_issues(health_records))
    issues.extend(_error_issues(log_entries))
    issues.extend(_performance_issues(metric_series))
    return issues


def find_unreferenced_issues(health_records: Sequence[HealthRecord], issues: Sequence[Issue]) -> List[Issue]:
    known = {record.resource_name for record in health_records}
    return [issue for issue in issues if issue.resource_name not in known]
