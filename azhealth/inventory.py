from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from azhealth.errors import ArmRequestError, InventoryError
from azhealth.models import ResourceRef, resource_name_from_id


logger = logging.getLogger("azhealth.inventory")


def _resource_from_payload(item: Dict[str, Any]) -> Optional[ResourceRef]:
    resource_id = str(item.get("id") or "").strip()
    if not resource_id:
        return None
    name = str(item.get("name") or "").strip() or resource_name_from_id(resource_id)
    return ResourceRef(
        name=name,
        type=str(item.get("type") or ""),
        location=str(item.get("location") or ""),
        id=resource_id,
    )


def list_resources(arm: Any, *, resource_group: Optional[str] = None) -> List[ResourceRef]:
    """
    Lists every resource in the subscription, or in `resource_group` when given.

    Raises InventoryError on any failure; the run cannot continue without it.
    """
    url = arm.resources_url(resource_group)
    try:
        resources = [ref for ref in (_resource_from_payload(item) for item in arm.iter_values(url)) if ref]
    except ArmRequestError as exc:
        scope = f"resource group {resource_group!r}" if resource_group else "subscription"
        raise InventoryError(
            f"Failed to list resources for {scope}: {exc}",
            status_code=exc.status_code,
            detail=exc.detail,
        ) from exc
    logger.info("Inventory listed: resource_group=%s count=%s", resource_group or "*", len(resources))
    return resources
