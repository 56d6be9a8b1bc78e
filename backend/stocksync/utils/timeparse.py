"""Timestamp helpers shared by the registrar and the cache sweeper."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import PurePath

# RFC3339-like: date, T or space, time, optional fraction, optional zone
_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[T ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<zone>Z|z|[+-]\d{2}:?\d{2})?$"
)

_CAPTURE_SUFFIX_RE = re.compile(r"_(\d{14})$")


def parse_remote_timestamp(value: str | None) -> datetime:
    """Parse a remote last-modified timestamp into an aware UTC datetime.

    Accepts values with or without a timezone and with or without
    fractional seconds. Values without a zone are taken as UTC.

    Raises:
        ValueError: If the value is empty or in an unsupported format.
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("empty timestamp")

    match = _TIMESTAMP_RE.match(text)
    if match is None:
        raise ValueError(f"unsupported timestamp format: {text!r}")

    parsed = datetime.strptime(
        f"{match['date']}T{match['time']}", "%Y-%m-%dT%H:%M:%S"
    )
    if match["fraction"]:
        # Nanosecond precision is truncated to microseconds
        micros = int(match["fraction"][:6].ljust(6, "0"))
        parsed = parsed.replace(microsecond=micros)

    zone = match["zone"]
    if zone is None or zone in ("Z", "z"):
        return parsed.replace(tzinfo=timezone.utc)

    sign = 1 if zone[0] == "+" else -1
    digits = zone[1:].replace(":", "")
    offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
    return parsed.replace(tzinfo=timezone(sign * offset)).astimezone(timezone.utc)


def format_watermark(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string for the KV store."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_watermark(value: str | None) -> datetime | None:
    """Inverse of format_watermark; None when missing or corrupt."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def capture_time_from_filename(name: str) -> datetime | None:
    """Infer the capture time from a trailing _yyyyMMddHHmmss filename segment.

    Example: exp_wyk_0001_20240115103000.xml -> 2024-01-15 10:30:00 UTC.
    """
    stem = PurePath(name).stem
    match = _CAPTURE_SUFFIX_RE.search(stem)
    if match is None:
        return None
    try:
        parsed = datetime.strptime(match.group(1), "%Y%m%d%H%M%S")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)
