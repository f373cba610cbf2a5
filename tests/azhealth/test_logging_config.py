from __future__ import annotations

import json
import logging

import pytest

from azhealth.logging_config import JsonFormatter, configure_logging


def _record(context) -> logging.LogRecord:
    return logging.getLogger("azhealth.test").makeRecord(
        "azhealth.test",
        logging.WARNING,
        __file__,
        10,
        "Collection failed: stage=%s",
        ("health",),
        None,
        extra={"context": context},
    )


def test_json_formatter_merges_context_extra() -> None:
    record = _record({"stage": "health", "resource": "vm1", "resource_group": None})

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["message"] == "Collection failed: stage=health"
    assert payload["resource"] == "vm1"
    assert "resource_group" not in payload
    assert payload["logger"] == "azhealth.test"
    assert payload["thread"] == record.threadName
    assert payload["timestamp"].endswith("Z")


def test_json_formatter_ignores_non_dict_context() -> None:
    payload = json.loads(JsonFormatter().format(_record("not-a-dict")))

    assert payload["message"] == "Collection failed: stage=health"
    assert "context" not in payload


def test_configure_logging_installs_one_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)

    configure_logging(level="debug", log_format="json")
    configure_logging(level="error", log_format="text")

    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JsonFormatter)
    assert root.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
