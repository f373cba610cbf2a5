from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from azhealth.models import MetricPoint, MetricSeries, ResourceRef
from azhealth.timeutil import iso_z, parse_dt, utc


DEFAULT_MONITOR_METRICS_API_VERSION = "2018-01-01"
METRICS_PROVIDER_PATH = "/providers/microsoft.insights/metrics"
METRIC_DEFINITIONS_PROVIDER_PATH = "/providers/microsoft.insights/metricDefinitions"
DEFAULT_INTERVAL = "PT1H"


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _metric_name(metric: Dict[str, Any]) -> str:
    name_obj = metric.get("name") if isinstance(metric.get("name"), dict) else {}
    return str(name_obj.get("value") or name_obj.get("localizedValue") or "").strip()


def list_metric_definitions(
    arm: Any,
    *,
    resource_id: str,
    api_version: str = DEFAULT_MONITOR_METRICS_API_VERSION,
) -> List[str]:
    """Metric names the resource exposes, in provider order, without duplicates."""
    url = arm.resource_scoped_url(resource_id, METRIC_DEFINITIONS_PROVIDER_PATH)
    names: List[str] = []
    for item in arm.iter_values(url, params={"api-version": api_version}):
        name = _metric_name(item)
        if name and name not in names:
            names.append(name)
    return names


def _extract_points(metric: Dict[str, Any]) -> List[MetricPoint]:
    points: List[MetricPoint] = []
    timeseries = metric.get("timeseries") if isinstance(metric.get("timeseries"), list) else []
    for series in timeseries:
        if not isinstance(series, dict):
            continue
        data = series.get("data") if isinstance(series.get("data"), list) else []
        for point in data:
            if not isinstance(point, dict):
                continue
            points.append(
                MetricPoint(
                    timestamp=parse_dt(str(point.get("timeStamp") or "")),
                    average=_as_float(point.get("average")),
                    maximum=_as_float(point.get("maximum")),
                )
            )
    return points


def get_metric_series(
    arm: Any,
    resource: ResourceRef,
    *,
    metric_name: str,
    start: datetime,
    end: datetime,
    interval: str = DEFAULT_INTERVAL,
    api_version: str = DEFAULT_MONITOR_METRICS_API_VERSION,
) -> MetricSeries:
    url = arm.resource_scoped_url(resource.id, METRICS_PROVIDER_PATH)
    params = {
        "api-version": api_version,
        "metricnames": metric_name,
        "timespan": f"{iso_z(utc(start))}/{iso_z(utc(end))}",
        "interval": interval,
        "aggregation": "Average,Maximum",
    }
    payload = arm.get_json(url, params=params)

    points: List[MetricPoint] = []
    values = payload.get("value") if isinstance(payload.get("value"), list) else []
    for metric in values:
        if isinstance(metric, dict):
            points.extend(_extract_points(metric))
    return MetricSeries(resource_name=resource.name, metric_name=metric_name, data_points=tuple(points))
