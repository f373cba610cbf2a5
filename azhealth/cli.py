from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from azhealth.config import DEFAULT_DAYS, DEFAULT_OUTPUT_PATH, ReportConfig
from azhealth.errors import AuthenticationFailedError, FatalError
from azhealth.logging_config import configure_logging
from azhealth.pipeline import run_health_report


logger = logging.getLogger("azhealth.cli")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def _maybe_load_dotenv() -> None:
    raw = os.environ.get("DISABLE_DOTENV")
    if raw is not None and raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}:
        return
    load_dotenv(override=False)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="azure-health-report",
        description="Collect Azure resource health, activity logs and metrics, and write an HTML report.",
    )
    parser.add_argument("--subscription-id", default=None, help="Subscription to scan (defaults to the first enabled one).")
    parser.add_argument("--resource-group", default=None, help="Only scan this resource group.")
    parser.add_argument("-o", "--output", default=None, help=f"Output HTML path (default: {DEFAULT_OUTPUT_PATH}).")
    parser.add_argument("--days", type=int, default=None, help=f"Lookback window in days (default: {DEFAULT_DAYS}).")
    parser.add_argument("--metric-interval", default=None, help="Metric time grain, ISO 8601 (default: PT1H).")
    parser.add_argument("--max-workers", type=int, default=None, help="Resources fetched in parallel per stage (default: 1).")
    parser.add_argument(
        "--max-runtime-seconds",
        type=float,
        default=None,
        help="Stop collecting after this many seconds and report what was gathered.",
    )
    parser.add_argument("--timeout-seconds", type=float, default=None, help="HTTP timeout per ARM call (default: 30).")
    parser.add_argument(
        "--interactive",
        dest="allow_interactive",
        action="store_true",
        default=None,
        help="Allow interactive browser login when no other credential is available.",
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR (default: LOG_LEVEL or INFO).")
    parser.add_argument("--log-format", default=None, choices=["TEXT", "JSON"], help="Log output format.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    _maybe_load_dotenv()
    args = _build_parser().parse_args(list(argv) if argv is not None else None)
    configure_logging(level=args.log_level, log_format=args.log_format)

    try:
        cfg = ReportConfig.from_env().with_overrides(
            subscription_id=args.subscription_id,
            resource_group=args.resource_group,
            output_path=args.output,
            days=args.days,
            metric_interval=args.metric_interval,
            max_workers=args.max_workers,
            max_runtime_seconds=args.max_runtime_seconds,
            timeout_seconds=args.timeout_seconds,
            allow_interactive=args.allow_interactive,
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        report = run_health_report(cfg)
    except (FatalError, OSError) as exc:
        message = str(exc).strip() or exc.__class__.__name__
        logger.error("Fatal: %s", message)
        print(f"Error: {message}", file=sys.stderr)
        if isinstance(exc, AuthenticationFailedError):
            print(
                "Hint: sign in with `az login`, set AZURE_CLIENT_ID/AZURE_TENANT_ID/AZURE_CLIENT_SECRET, "
                "or pass --interactive.",
                file=sys.stderr,
            )
        return EXIT_FATAL

    print(f"Report: {cfg.output_path}")
    print(f"health_records={len(report.health_records)} issues={len(report.issues)} partial={report.partial}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
