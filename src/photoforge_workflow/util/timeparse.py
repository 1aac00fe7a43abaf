from __future__ import annotations

import re
from datetime import datetime
from dateutil import parser as dtparser

# Backend timestamps seen so far:
# - 2024-05-01T12:30:00.000Z
# - 2024-05-01T12:30:00+00:00
# - 2024-05-01 12:30:00
# - 1714566600000 (epoch milliseconds)
# - Anything else dateutil can read as a last resort.

EPOCH_MS_REGEX = re.compile(r"^\d{12,14}$")
EPOCH_S_REGEX = re.compile(r"^\d{9,10}$")

def parse_api_timestamp(value: object) -> datetime | None:
    """Parse a created_at/createdAt value from an API payload.

    Returns None for missing or unreadable values; payload timestamps are
    informational and never worth failing a request over.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))
    v = str(value).strip()
    if not v:
        return None
    if EPOCH_MS_REGEX.match(v) or EPOCH_S_REGEX.match(v):
        return _from_epoch(float(v))
    try:
        return dtparser.isoparse(v)
    except ValueError:
        pass
    try:
        return dtparser.parse(v)
    except (ValueError, OverflowError):
        return None

def _from_epoch(raw: float) -> datetime | None:
    seconds = raw / 1000.0 if raw > 1e11 else raw
    try:
        return datetime.fromtimestamp(seconds).astimezone()
    except (OverflowError, OSError, ValueError):
        return None

def format_log_timestamp(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S")
