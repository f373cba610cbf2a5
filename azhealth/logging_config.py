import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that log every ARM request at INFO.
QUIET_LOGGERS = ("azure", "azure.identity", "httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line. Keys from a `context` dict passed via `extra=` are
    merged at the top level, so collection warnings carry `stage`, `resource` and
    `resource_group` as fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            payload.update({k: v for k, v in context.items() if v is not None})

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> logging.Logger:
    """
    Configures the root logger once per process.
    ENV: LOG_FORMAT (JSON | TEXT), default TEXT
    ENV: LOG_LEVEL (DEBUG | INFO | WARNING | ERROR), default INFO
    Arguments win over the environment.
    """
    root = logging.getLogger()
    if root.handlers:
        return root

    fmt = (log_format or os.environ.get("LOG_FORMAT") or "TEXT").strip().upper()
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
    resolved = getattr(logging, level_name, logging.INFO)
    root.setLevel(resolved)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(JsonFormatter() if fmt == "JSON" else logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
