from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional

import pytest

from azhealth.collector import collect_health, collect_logs, collect_metrics
from azhealth.errors import ArmServerError
from azhealth.models import CollectionResult, ResourceRef


END = datetime(2024, 1, 8, tzinfo=timezone.utc)
START = END - timedelta(days=7)


def _resource(name: str) -> ResourceRef:
    return ResourceRef(
        name=name,
        type="Microsoft.Compute/virtualMachines",
        location="eastus",
        id=f"/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Compute/virtualMachines/{name}",
    )


class FakeArmClient:
    """Serves canned payloads keyed by URL; an exception value is raised instead."""

    def __init__(self, *, responses: Dict[str, Any]) -> None:
        self._responses = responses
        self.calls: List[str] = []

    def subscription_url(self) -> str:
        return "https://example.test/subscriptions/sub"

    def resource_scoped_url(self, resource_id: str, provider_path: str) -> str:
        return f"https://example.test{resource_id}{provider_path}"

    def get_json(self, url: str, *, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        self.calls.append(url)
        key = url
        if params and params.get("metricnames"):
            key = f"{url}#{params['metricnames']}"
        payload = self._responses.get(key, self._responses.get(url))
        if isinstance(payload, BaseException):
            raise payload
        return payload

    def iter_values(self, url: str, *, params: Optional[Dict[str, str]] = None) -> Iterator[Dict[str, Any]]:
        yield from self.get_json(url, params=params).get("value", [])


def _health_url(name: str) -> str:
    return (
        f"https://example.test{_resource(name).id}"
        "/providers/Microsoft.ResourceHealth/availabilityStatuses/current"
    )


def _definitions_url(name: str) -> str:
    return f"https://example.test{_resource(name).id}/providers/microsoft.insights/metricDefinitions"


def _metrics_url(name: str) -> str:
    return f"https://example.test{_resource(name).id}/providers/microsoft.insights/metrics"


@pytest.mark.parametrize("max_workers", [1, 4])
def test_one_failing_health_fetch_does_not_block_other_resources(max_workers: int) -> None:
    arm = FakeArmClient(
        responses={
            _health_url("vm1"): {"properties": {"availabilityState": "Available"}},
            _health_url("vm2"): ArmServerError("boom", status_code=500),
            _health_url("vm3"): {"properties": {"availabilityState": "Degraded", "summary": "Slow disk"}},
        }
    )
    result = CollectionResult(resources=[_resource("vm1"), _resource("vm2"), _resource("vm3")])

    collect_health(arm, result, max_workers=max_workers)

    assert [(r.resource_name, r.availability_state) for r in result.health_records] == [
        ("vm1", "Available"),
        ("vm3", "Degraded"),
    ]
    assert result.health_records[1].summary == "Slow disk"
    assert len(result.warnings) == 1
    assert result.warnings[0].resource_name == "vm2"
    assert result.warnings[0].stage == "health"
    assert "ArmServerError" in result.warnings[0].message
    assert result.cancelled is False


def test_unrecognised_availability_state_maps_to_unknown() -> None:
    arm = FakeArmClient(responses={_health_url("vm1"): {"properties": {"availabilityState": "Rebooting"}}})
    result = CollectionResult(resources=[_resource("vm1")])

    collect_health(arm, result)

    assert result.health_records[0].availability_state == "Unknown"


def test_collect_logs_keeps_entries_inside_window() -> None:
    url = "https://example.test/subscriptions/sub/providers/Microsoft.Insights/eventtypes/management/values"
    arm = FakeArmClient(
        responses={
            url: {
                "value": [
                    {
                        "eventTimestamp": "2024-01-05T10:00:00.1234567Z",
                        "level": "Error",
                        "resourceId": _resource("vm1").id,
                        "operationName": {"value": "x", "localizedValue": "Start Virtual Machine"},
                        "status": {"value": "Failed", "localizedValue": "Failed"},
                        "properties": {"statusMessage": "quota exceeded"},
                    },
                    {"eventTimestamp": "2023-12-01T00:00:00Z", "level": "Error"},
                ]
            }
        }
    )
    result = CollectionResult(resources=[_resource("vm1")])

    collect_logs(arm, result, start=START, end=END)

    assert len(result.log_entries) == 1
    entry = result.log_entries[0]
    assert entry.level == "Error"
    assert entry.content == "Start Virtual Machine (Failed): quota exceeded"
    assert entry.timestamp == datetime(2024, 1, 5, 10, 0, 0, 123456, tzinfo=timezone.utc)


def test_metric_failures_are_isolated_per_metric_and_per_resource() -> None:
    arm = FakeArmClient(
        responses={
            _definitions_url("vm1"): {
                "value": [{"name": {"value": "Percentage CPU"}}, {"name": {"value": "Disk Read Bytes"}}]
            },
            _metrics_url("vm1"): {
                "value": [
                    {
                        "name": {"value": "Percentage CPU"},
                        "timeseries": [
                            {
                                "data": [
                                    {"timeStamp": "2024-01-07T00:00:00Z", "average": 1.0, "maximum": 2.0},
                                    {"timeStamp": "2024-01-07T01:00:00Z", "average": 3.0, "maximum": 4.0},
                                ]
                            }
                        ],
                    }
                ]
            },
            _metrics_url("vm1") + "#Disk Read Bytes": ArmServerError("metric unavailable", status_code=500),
            _definitions_url("vm2"): ArmServerError("definitions unavailable", status_code=503),
        }
    )
    result = CollectionResult(resources=[_resource("vm1"), _resource("vm2")])

    collect_metrics(arm, result, start=START, end=END)

    assert [(s.resource_name, s.metric_name) for s in result.metric_series] == [
        ("vm1", "Percentage CPU"),
    ]
    assert [p.maximum for p in result.metric_series[0].data_points] == [2.0, 4.0]
    assert [(w.resource_name, w.stage) for w in result.warnings] == [
        ("vm1", "metrics:Disk Read Bytes"),
        ("vm2", "metrics"),
    ]


def test_should_stop_keeps_collected_data_and_marks_cancelled() -> None:
    arm = FakeArmClient(
        responses={
            _health_url("vm1"): {"properties": {"availabilityState": "Available"}},
            _health_url("vm2"): {"properties": {"availabilityState": "Available"}},
        }
    )
    result = CollectionResult(resources=[_resource("vm1"), _resource("vm2")])

    collect_health(arm, result, should_stop=lambda: len(arm.calls) >= 1)

    assert [r.resource_name for r in result.health_records] == ["vm1"]
    assert result.cancelled is True
    assert len(arm.calls) == 1


def test_ctrl_c_in_threaded_mode_cancels_queued_fetches_and_keeps_finished_ones() -> None:
    resources = [_resource(f"vm{i}") for i in range(12)]
    calls: List[str] = []

    class InterruptingArm(FakeArmClient):
        def get_json(self, url: str, *, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
            calls.append(url)
            if url == _health_url("vm1"):
                raise KeyboardInterrupt
            if url != _health_url("vm0"):
                time.sleep(0.2)
            return {"properties": {"availabilityState": "Available"}}

    result = CollectionResult(resources=resources)
    started = time.monotonic()

    with pytest.raises(KeyboardInterrupt):
        collect_health(InterruptingArm(responses={}), result, max_workers=2)

    assert time.monotonic() - started < 1.0
    assert result.cancelled is True
    assert result.health_records[0].resource_name == "vm0"
    assert "vm1" not in [r.resource_name for r in result.health_records]
    assert len(calls) < len(resources)


def test_ctrl_c_in_sequential_mode_marks_cancelled() -> None:
    arm = FakeArmClient(
        responses={
            _health_url("vm1"): {"properties": {"availabilityState": "Available"}},
            _health_url("vm2"): KeyboardInterrupt(),
        }
    )
    result = CollectionResult(resources=[_resource("vm1"), _resource("vm2"), _resource("vm3")])

    with pytest.raises(KeyboardInterrupt):
        collect_health(arm, result)

    assert [r.resource_name for r in result.health_records] == ["vm1"]
    assert result.cancelled is True
    assert len(arm.calls) == 2


def test_unavailable_resource_summary_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    arm = FakeArmClient(
        responses={
            _health_url("vm1"): {
                "properties": {"availabilityState": "Unavailable", "reasonType": "Unplanned", "summary": "Host failure"}
            },
        }
    )
    result = CollectionResult(resources=[_resource("vm1")])

    with caplog.at_level(logging.INFO, logger="azhealth.collector"):
        collect_health(arm, result)

    record = next(r for r in caplog.records if r.getMessage().startswith("Resource not available"))
    assert "reason=Unplanned" in record.getMessage()
    assert "summary=Host failure" in record.getMessage()
    assert record.context["resource_group"] == "rg"
