"""
timeutil.py - Timestamp helpers shared by the store and the wire shaping.
"""

import time
from datetime import date, datetime, timezone


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_millis() -> int:
    return int(time.time() * 1000)


def parse_iso_date(value: str) -> date | None:
    """Calendar date of an ISO-8601 string, or None when unparseable."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None
