from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from azhealth import cli
from azhealth.config import ReportConfig
from azhealth.errors import AuthenticationFailedError, InventoryError
from azhealth.models import Report


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISABLE_DOTENV", "true")
    for name in (
        "AZURE_SUBSCRIPTION_ID",
        "HEALTH_REPORT_RESOURCE_GROUP",
        "HEALTH_REPORT_OUTPUT",
        "HEALTH_REPORT_DAYS",
        "HEALTH_REPORT_METRIC_INTERVAL",
        "HEALTH_REPORT_MAX_WORKERS",
        "HEALTH_REPORT_MAX_RUNTIME_SECONDS",
        "HEALTH_REPORT_TIMEOUT_SECONDS",
        "HEALTH_REPORT_ALLOW_INTERACTIVE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    cfg = ReportConfig.from_env()

    assert cfg.subscription_id is None
    assert cfg.resource_group is None
    assert cfg.output_path == "AzureHealthReport.html"
    assert cfg.days == 7
    assert cfg.max_workers == 1
    assert cfg.allow_interactive is False


def test_env_values_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AZURE_SUBSCRIPTION_ID", " sub-1 ")
    monkeypatch.setenv("HEALTH_REPORT_DAYS", "14")
    monkeypatch.setenv("HEALTH_REPORT_ALLOW_INTERACTIVE", "yes")

    cfg = ReportConfig.from_env().with_overrides(days=3, resource_group="rg", output_path=None)

    assert cfg.subscription_id == "sub-1"
    assert cfg.days == 3
    assert cfg.resource_group == "rg"
    assert cfg.output_path == "AzureHealthReport.html"
    assert cfg.allow_interactive is True


@pytest.mark.parametrize(
    "name,value",
    [
        ("HEALTH_REPORT_DAYS", "0"),
        ("HEALTH_REPORT_DAYS", "abc"),
        ("HEALTH_REPORT_DAYS", "91"),
        ("HEALTH_REPORT_MAX_WORKERS", "100"),
        ("HEALTH_REPORT_ALLOW_INTERACTIVE", "maybe"),
        ("HEALTH_REPORT_METRIC_INTERVAL", "1h"),
    ],
)
def test_invalid_env_values_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        ReportConfig.from_env()


def _fake_report() -> Report:
    return Report(generated_at=datetime(2024, 1, 1, tzinfo=timezone.utc), health_records=(), issues=())


def test_cli_passes_arguments_and_exits_zero(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    captured = {}

    def fake_run(cfg: ReportConfig) -> Report:
        captured["cfg"] = cfg
        return _fake_report()

    monkeypatch.setattr(cli, "run_health_report", fake_run)
    out = tmp_path / "r.html"

    code = cli.main(["--resource-group", "rg", "--days", "3", "-o", str(out), "--max-workers", "4"])

    assert code == 0
    cfg = captured["cfg"]
    assert (cfg.resource_group, cfg.days, cfg.output_path, cfg.max_workers) == ("rg", 3, str(out), 4)


@pytest.mark.parametrize("exc", [AuthenticationFailedError("login failed"), InventoryError("cannot list")])
def test_cli_exits_one_on_fatal_error(monkeypatch: pytest.MonkeyPatch, exc: Exception, capsys) -> None:
    def fake_run(cfg: ReportConfig) -> Report:
        raise exc

    monkeypatch.setattr(cli, "run_health_report", fake_run)

    assert cli.main([]) == 1
    assert str(exc) in capsys.readouterr().err


def test_cli_rejects_invalid_days(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "run_health_report", lambda cfg: pytest.fail("should not run"))

    assert cli.main(["--days", "0"]) == 2
