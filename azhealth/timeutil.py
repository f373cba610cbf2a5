from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional


# Azure emits up to 7 fractional digits; datetime accepts at most 6.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    text = _FRACTION_RE.sub(r"\1", str(value).strip()).replace("Z", "+00:00")
    try:
        return utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def iso_z(dt: datetime) -> str:
    return utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")
