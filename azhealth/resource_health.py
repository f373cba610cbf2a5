from __future__ import annotations

from typing import Any, Dict

from azhealth.models import HealthRecord, ResourceRef, normalize_availability_state


DEFAULT_RESOURCE_HEALTH_API_VERSION = "2022-10-01"
RESOURCE_HEALTH_PROVIDER_PATH = "/providers/Microsoft.ResourceHealth/availabilityStatuses/current"


def _parse_health_record(resource: ResourceRef, payload: Dict[str, Any]) -> HealthRecord:
    props = payload.get("properties") if isinstance(payload.get("properties"), dict) else {}
    return HealthRecord(
        resource_name=resource.name,
        resource_type=resource.type,
        location=resource.location,
        availability_state=normalize_availability_state(str(props.get("availabilityState") or "")),
        summary=str(props.get("summary") or ""),
        reason_type=str(props.get("reasonType") or ""),
    )


def get_health_record(
    arm: Any,
    resource: ResourceRef,
    *,
    api_version: str = DEFAULT_RESOURCE_HEALTH_API_VERSION,
) -> HealthRecord:
    """
    Current availability of one resource from Azure Resource Health.

    API failures propagate; a payload without an availabilityState maps to Unknown.
    """
    url = arm.resource_scoped_url(resource.id, RESOURCE_HEALTH_PROVIDER_PATH)
    payload = arm.get_json(url, params={"api-version": api_version})
    return _parse_health_record(resource, payload)
