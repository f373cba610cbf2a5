from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, List, Tuple, TypeVar

from azhealth.activity_logs import list_activity_logs
from azhealth.models import AVAILABLE, CollectionResult, CollectionWarning, HealthRecord, MetricSeries, ResourceRef
from azhealth.monitor_metrics import DEFAULT_INTERVAL, get_metric_series, list_metric_definitions
from azhealth.resource_health import get_health_record


logger = logging.getLogger("azhealth.collector")

T = TypeVar("T")
StopFn = Callable[[], bool]

STAGE_HEALTH = "health"
STAGE_LOGS = "logs"
STAGE_METRICS = "metrics"

_SKIPPED = object()


def _never_stop() -> bool:
    return False


def _format_error(exc: BaseException) -> str:
    text = str(exc).strip()
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


def _record_warning(result: CollectionResult, *, resource: ResourceRef, stage: str, exc: BaseException) -> None:
    message = _format_error(exc)
    logger.warning(
        "Collection failed: stage=%s resource=%s error=%s",
        stage,
        resource.name,
        message,
        extra={"context": {"stage": stage, "resource": resource.name, "resource_group": resource.resource_group}},
    )
    result.warnings.append(CollectionWarning(resource_name=resource.name, stage=stage, message=message))


def _consume(
    result: CollectionResult,
    *,
    stage: str,
    resource: ResourceRef,
    future: "Future[Any]",
    handle: Callable[[ResourceRef, Any], None],
) -> None:
    try:
        value = future.result()
    except Exception as exc:
        _record_warning(result, resource=resource, stage=stage, exc=exc)
        return
    if value is _SKIPPED:
        result.cancelled = True
        return
    handle(resource, value)


def _for_each_resource(
    result: CollectionResult,
    *,
    stage: str,
    fetch: Callable[[ResourceRef], T],
    handle: Callable[[ResourceRef, T], None],
    should_stop: StopFn,
    max_workers: int,
) -> None:
    """
    Runs `fetch` for every inventoried resource and passes successes to `handle`
    in inventory order. A failing resource is recorded as a warning and skipped.
    When `should_stop()` turns true the remaining resources are left out and the
    result is marked cancelled.

    KeyboardInterrupt marks the result cancelled and propagates. In the threaded
    path queued fetches are cancelled first, and fetches that already finished
    are still handed to `handle`.
    """
    resources = list(result.resources)

    if max_workers <= 1:
        for resource in resources:
            if should_stop():
                result.cancelled = True
                logger.warning("Collection stopped early: stage=%s", stage)
                return
            try:
                value = fetch(resource)
            except KeyboardInterrupt:
                result.cancelled = True
                raise
            except Exception as exc:
                _record_warning(result, resource=resource, stage=stage, exc=exc)
                continue
            handle(resource, value)
        return

    interrupted = threading.Event()

    def _task(resource: ResourceRef) -> Any:
        if interrupted.is_set() or should_stop():
            return _SKIPPED
        return fetch(resource)

    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"azhealth-{stage}")
    futures: List[Tuple[ResourceRef, "Future[Any]"]] = []
    handled = 0
    try:
        futures = [(resource, executor.submit(_task, resource)) for resource in resources]
        for resource, future in futures:
            _consume(result, stage=stage, resource=resource, future=future, handle=handle)
            handled += 1
    except KeyboardInterrupt:
        interrupted.set()
        executor.shutdown(wait=False, cancel_futures=True)
        result.cancelled = True
        for resource, future in futures[handled:]:
            if future.done() and not future.cancelled():
                try:
                    _consume(result, stage=stage, resource=resource, future=future, handle=handle)
                except KeyboardInterrupt:
                    continue
        logger.warning(
            "Collection interrupted: stage=%s finished=%s of %s",
            stage,
            sum(1 for _resource, f in futures if f.done() and not f.cancelled()),
            len(resources),
        )
        raise
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    if result.cancelled:
        logger.warning("Collection stopped early: stage=%s", stage)


def _keep_health_record(result: CollectionResult, resource: ResourceRef, record: HealthRecord) -> None:
    if record.availability_state != AVAILABLE:
        logger.info(
            "Resource not available: resource=%s state=%s reason=%s summary=%s",
            resource.name,
            record.availability_state,
            record.reason_type or "-",
            record.summary or "-",
            extra={"context": {"resource": resource.name, "resource_group": resource.resource_group}},
        )
    result.health_records.append(record)


def collect_health(
    arm: Any,
    result: CollectionResult,
    *,
    should_stop: StopFn = _never_stop,
    max_workers: int = 1,
) -> None:
    _for_each_resource(
        result,
        stage=STAGE_HEALTH,
        fetch=lambda resource: get_health_record(arm, resource),
        handle=lambda resource, record: _keep_health_record(result, resource, record),
        should_stop=should_stop,
        max_workers=max_workers,
    )


def collect_logs(
    arm: Any,
    result: CollectionResult,
    *,
    start: datetime,
    end: datetime,
    should_stop: StopFn = _never_stop,
    max_workers: int = 1,
) -> None:
    _for_each_resource(
        result,
        stage=STAGE_LOGS,
        fetch=lambda resource: list_activity_logs(arm, resource_id=resource.id, start=start, end=end),
        handle=lambda _resource, entries: result.log_entries.extend(entries),
        should_stop=should_stop,
        max_workers=max_workers,
    )


def _fetch_resource_metrics(
    arm: Any,
    resource: ResourceRef,
    *,
    start: datetime,
    end: datetime,
    interval: str,
) -> Tuple[List[MetricSeries], List[Tuple[str, BaseException]]]:
    series: List[MetricSeries] = []
    failures: List[Tuple[str, BaseException]] = []
    for metric_name in list_metric_definitions(arm, resource_id=resource.id):
        try:
            series.append(
                get_metric_series(arm, resource, metric_name=metric_name, start=start, end=end, interval=interval)
            )
        except Exception as exc:
            failures.append((metric_name, exc))
    return series, failures


def collect_metrics(
    arm: Any,
    result: CollectionResult,
    *,
    start: datetime,
    end: datetime,
    interval: str = DEFAULT_INTERVAL,
    should_stop: StopFn = _never_stop,
    max_workers: int = 1,
) -> None:
    def _handle(resource: ResourceRef, value: Tuple[List[MetricSeries], List[Tuple[str, BaseException]]]) -> None:
        series, failures = value
        result.metric_series.extend(series)
        for metric_name, exc in failures:
            _record_warning(result, resource=resource, stage=f"{STAGE_METRICS}:{metric_name}", exc=exc)

    _for_each_resource(
        result,
        stage=STAGE_METRICS,
        fetch=lambda resource: _fetch_resource_metrics(arm, resource, start=start, end=end, interval=interval),
        handle=_handle,
        should_stop=should_stop,
        max_workers=max_workers,
    )


def summarize(result: CollectionResult) -> str:
    return (
        f"resources={len(result.resources)} health={len(result.health_records)} logs={len(result.log_entries)} "
        f"metrics={len(result.metric_series)} warnings={len(result.warnings)} cancelled={result.cancelled}"
    )
