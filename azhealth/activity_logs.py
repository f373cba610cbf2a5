from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from azhealth.models import LogEntry
from azhealth.timeutil import iso_z, parse_dt, utc


DEFAULT_ACTIVITY_LOG_API_VERSION = "2015-04-01"
ACTIVITY_LOG_PROVIDER_PATH = "/providers/Microsoft.Insights/eventtypes/management/values"
ACTIVITY_LOG_SELECT = "eventTimestamp,level,operationName,status,properties,resourceId,description"


def _escape_odata_literal(value: str) -> str:
    return (value or "").replace("'", "''")


def _localized(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("localizedValue") or value.get("value") or "").strip()
    return str(value or "").strip()


def _entry_content(item: Dict[str, Any]) -> str:
    operation = _localized(item.get("operationName"))
    status = _localized(item.get("status"))
    props = item.get("properties") if isinstance(item.get("properties"), dict) else {}
    message = str(props.get("statusMessage") or item.get("description") or "").strip()

    head = operation
    if status:
        head = f"{head} ({status})" if head else status
    if head and message:
        return f"{head}: {message}"
    return head or message


def build_activity_log_filter(resource_id: str, start: datetime, end: datetime) -> str:
    return (
        f"eventTimestamp ge '{iso_z(start)}' and eventTimestamp le '{iso_z(end)}' "
        f"and resourceUri eq '{_escape_odata_literal(resource_id)}'"
    )


def list_activity_logs(
    arm: Any,
    *,
    resource_id: str,
    start: datetime,
    end: datetime,
    api_version: str = DEFAULT_ACTIVITY_LOG_API_VERSION,
) -> List[LogEntry]:
    """
    Activity log events for one resource with eventTimestamp in [start, end].

    Events the service returns outside the window are dropped.
    """
    start_utc, end_utc = utc(start), utc(end)
    url = f"{arm.subscription_url()}{ACTIVITY_LOG_PROVIDER_PATH}"
    params = {
        "api-version": api_version,
        "$filter": build_activity_log_filter(resource_id, start_utc, end_utc),
        "$select": ACTIVITY_LOG_SELECT,
    }

    entries: List[LogEntry] = []
    for item in arm.iter_values(url, params=params):
        timestamp = parse_dt(str(item.get("eventTimestamp") or ""))
        if timestamp is None or timestamp < start_utc or timestamp > end_utc:
            continue
        entries.append(
            LogEntry(
                resource_id=str(item.get("resourceId") or resource_id),
                level=_localized(item.get("level")),
                content=_entry_content(item),
                timestamp=timestamp,
            )
        )
    return entries
