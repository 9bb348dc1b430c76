"""Timestamp parsing helpers."""

from datetime import datetime, timezone
from typing import Any

# Numbers above this are epoch milliseconds (1e11 s is the year 5138)
MILLISECONDS_CUTOFF = 1e11


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 string or a Unix timestamp into an aware datetime.

    Numeric values above MILLISECONDS_CUTOFF are epoch milliseconds (as sent
    by JavaScript's Date.now()), smaller ones epoch seconds. A trailing "Z"
    is accepted and naive values are taken as UTC.

    Raises:
        TypeError, ValueError: value is not a timestamp
    """
    if isinstance(value, bool):
        raise TypeError("boolean is not a timestamp")
    if isinstance(value, (int, float)):
        if abs(value) > MILLISECONDS_CUTOFF:
            value = value / 1000
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise TypeError(f"unsupported timestamp type: {type(value).__name__}")
