"""Runtime configuration for the health report."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Optional

from azhealth.monitor_metrics import DEFAULT_INTERVAL


DEFAULT_OUTPUT_PATH = "AzureHealthReport.html"
DEFAULT_DAYS = 7
MAX_DAYS = 90  # activity log retention
MAX_WORKERS = 32

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}
_FALSY = {"0", "false", "f", "no", "n", "off"}


def _strip_or_none(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_bool(name: str, value: str) -> bool:
    text = value.strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ValueError(f"Invalid boolean for {name}={value!r}")


def _env_int(name: str, default: int) -> int:
    raw = _strip_or_none(os.environ.get(name))
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid int for {name}={raw!r}") from exc


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = _strip_or_none(os.environ.get(name))
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid float for {name}={raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = _strip_or_none(os.environ.get(name))
    if raw is None:
        return default
    return _parse_bool(name, raw)


def _check_range(name: str, value: float, *, min_value: float, max_value: float) -> None:
    if value < min_value or value > max_value:
        raise ValueError(f"{name} must be in [{min_value}, {max_value}] (got {value}).")


@dataclass(frozen=True)
class ReportConfig:
    subscription_id: Optional[str] = None
    resource_group: Optional[str] = None
    output_path: str = DEFAULT_OUTPUT_PATH
    days: int = DEFAULT_DAYS
    metric_interval: str = DEFAULT_INTERVAL
    max_workers: int = 1
    max_runtime_seconds: Optional[float] = None
    timeout_seconds: float = 30.0
    allow_interactive: bool = False

    def __post_init__(self) -> None:
        _check_range("days", self.days, min_value=1, max_value=MAX_DAYS)
        _check_range("max_workers", self.max_workers, min_value=1, max_value=MAX_WORKERS)
        _check_range("timeout_seconds", self.timeout_seconds, min_value=0.1, max_value=600.0)
        if self.max_runtime_seconds is not None and self.max_runtime_seconds <= 0:
            raise ValueError(f"max_runtime_seconds must be > 0 (got {self.max_runtime_seconds}).")
        if not (self.output_path or "").strip():
            raise ValueError("output_path is required")
        if not (self.metric_interval or "").strip().upper().startswith("PT"):
            raise ValueError(f"metric_interval must be an ISO 8601 duration like PT1H (got {self.metric_interval!r}).")

    @staticmethod
    def from_env() -> "ReportConfig":
        return ReportConfig(
            subscription_id=_strip_or_none(os.environ.get("AZURE_SUBSCRIPTION_ID")),
            resource_group=_strip_or_none(os.environ.get("HEALTH_REPORT_RESOURCE_GROUP")),
            output_path=_strip_or_none(os.environ.get("HEALTH_REPORT_OUTPUT")) or DEFAULT_OUTPUT_PATH,
            days=_env_int("HEALTH_REPORT_DAYS", DEFAULT_DAYS),
            metric_interval=_strip_or_none(os.environ.get("HEALTH_REPORT_METRIC_INTERVAL")) or DEFAULT_INTERVAL,
            max_workers=_env_int("HEALTH_REPORT_MAX_WORKERS", 1),
            max_runtime_seconds=_env_float("HEALTH_REPORT_MAX_RUNTIME_SECONDS", None),
            timeout_seconds=_env_float("HEALTH_REPORT_TIMEOUT_SECONDS", 30.0),
            allow_interactive=_env_bool("HEALTH_REPORT_ALLOW_INTERACTIVE", False),
        )

    def with_overrides(self, **overrides: Any) -> "ReportConfig":
        """Returns a copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        return replace(self, **values)
