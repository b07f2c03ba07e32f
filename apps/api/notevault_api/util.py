from __future__ import annotations

import re
from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def rfc3339(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


_FRACTION_RE = re.compile(r"\.(\d+)")
_SHORT_OFFSET_RE = re.compile(r"(T[\d:.]+)([+-]\d{2})(\d{2})?$")


def parse_timestamp(raw: str) -> datetime:
    """
    Parses the timestamp shapes PostgREST emits: `Z` or `+HH:MM` suffixes and
    anywhere from 1 to 9 fractional digits. Naive values are taken as UTC.
    """
    text = raw.strip().replace(" ", "T", 1)
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    text = _SHORT_OFFSET_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}:{m.group(3) or '00'}", text)
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def parse_date(raw: str | date) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise TypeError(f"not a date: {raw!r}")
    return date.fromisoformat(raw.strip()[:10])
