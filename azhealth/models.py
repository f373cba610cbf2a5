from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


AVAILABLE = "Available"
DEGRADED = "Degraded"
UNAVAILABLE = "Unavailable"
UNKNOWN = "Unknown"
AVAILABILITY_STATES = (AVAILABLE, DEGRADED, UNAVAILABLE, UNKNOWN)

ISSUE_HEALTH = "Health"
ISSUE_ERROR = "Error"
ISSUE_PERFORMANCE = "Performance"

SEVERITY_HIGH = "High"
SEVERITY_MEDIUM = "Medium"
SEVERITY_LOW = "Low"
SEVERITIES = (SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_LOW)


def normalize_availability_state(raw: Optional[str]) -> str:
    text = (raw or "").strip().lower()
    for state in AVAILABILITY_STATES:
        if text == state.lower():
            return state
    return UNKNOWN


def resource_name_from_id(resource_id: str) -> str:
    return (resource_id or "").split("/")[-1]


def resource_group_from_id(resource_id: str) -> Optional[str]:
    parts = [p for p in (resource_id or "").split("/") if p]
    for idx, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[idx + 1]
    return None


@dataclass(frozen=True)
class ResourceRef:
    name: str
    type: str
    location: str
    id: str

    @property
    def resource_group(self) -> Optional[str]:
        return resource_group_from_id(self.id)


@dataclass(frozen=True)
class HealthRecord:
    resource_name: str
    resource_type: str
    location: str
    availability_state: str  # Available|Degraded|Unavailable|Unknown
    summary: str = ""
    reason_type: str = ""


@dataclass(frozen=True)
class LogEntry:
    resource_id: str
    level: str
    content: str
    timestamp: Optional[datetime]


@dataclass(frozen=True)
class MetricPoint:
    timestamp: Optional[datetime]
    average: Optional[float]
    maximum: Optional[float]


@dataclass(frozen=True)
class MetricSeries:
    resource_name: str
    metric_name: str
    data_points: Tuple[MetricPoint, ...] = ()


@dataclass(frozen=True)
class Issue:
    resource_name: str
    issue_type: str  # Health|Error|Performance
    severity: str  # High|Medium|Low
    description: str
    recommended_action: str


@dataclass(frozen=True)
class CollectionWarning:
    resource_name: str
    stage: str
    message: str


@dataclass
class CollectionResult:
    """Accumulates everything gathered during one run, in inventory order."""

    resources: List[ResourceRef] = field(default_factory=list)
    health_records: List[HealthRecord] = field(default_factory=list)
    log_entries: List[LogEntry] = field(default_factory=list)
    metric_series: List[MetricSeries] = field(default_factory=list)
    warnings: List[CollectionWarning] = field(default_factory=list)
    cancelled: bool = False


@dataclass(frozen=True)
class Report:
    generated_at: datetime
    health_records: Tuple[HealthRecord, ...]
    issues: Tuple[Issue, ...]
    scope: str = ""
    warnings: Tuple[CollectionWarning, ...] = ()
    partial: bool = False
