"""Datetime utilities for journal and audit timestamps."""

import re
from datetime import datetime, timedelta
from typing import Optional

# .NET round-trip timestamps carry 7 fractional digits
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")

LOOKBACK_DELTAS = {
    "24h": timedelta(hours=24),
    "3d": timedelta(days=3),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def format_iso(dt: Optional[datetime]) -> Optional[str]:
    """ISO 8601 text for the JSON records; None stays None."""
    return dt.isoformat() if dt else None


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 string, tolerating 7-digit fractions and a trailing Z.

    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _LONG_FRACTION.sub(r"\1", text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def lookback_delta(choice: str) -> timedelta:
    """Map a lookback choice ("24h", "3d", "7d", "30d") to a timedelta."""
    try:
        return LOOKBACK_DELTAS[choice]
    except KeyError:
        raise ValueError(f"Unknown lookback window: {choice!r}") from None


def from_timestamp(ts: Optional[float]) -> Optional[datetime]:
    """Local naive datetime from a POSIX timestamp (None passes through)."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts)
