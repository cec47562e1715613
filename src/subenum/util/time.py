"""Timestamp, duration and duration-string helpers."""

import re
from datetime import datetime, timezone
from typing import Optional

_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|us|µs|ns|h|m|s)')
_UNIT_SECONDS = {
    'h': 3600.0,
    'm': 60.0,
    's': 1.0,
    'ms': 1e-3,
    'us': 1e-6,
    'µs': 1e-6,
    'ns': 1e-9,
}


def now_utc() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def duration_ms(start: datetime, end: Optional[datetime] = None) -> float:
    """Milliseconds elapsed between two timestamps (end defaults to now)."""
    if end is None:
        end = now_utc()
    return (end - start).total_seconds() * 1000


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Accepts plain numbers (seconds) and unit strings such as "5m", "90s",
    "1m30s" or "250ms".

    Raises:
        ValueError: if the string is empty or has unparsed leftovers
    """
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")

    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


def format_duration(seconds: float) -> str:
    """Render seconds back as a compact duration string (e.g. "5m0s")."""
    whole = int(seconds)
    if whole != seconds or whole < 60:
        return f"{seconds:g}s"
    hours, rem = divmod(whole, 3600)
    minutes, secs = divmod(rem, 60)
    out = f"{hours}h" if hours else ""
    return f"{out}{minutes}m{secs}s"
