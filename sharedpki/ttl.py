"""Parse Vault / Step style durations ("87600h", "30d", "1h30m", "3600")."""

from __future__ import annotations

import re
from datetime import timedelta

_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_PART = re.compile(r"(\d+)([smhd])")


def _to_timedelta(seconds: int, value: str) -> timedelta:
    try:
        return timedelta(seconds=seconds)
    except OverflowError:
        raise ValueError(f"Duration out of range: {value!r}") from None


def parse_ttl(value: str) -> timedelta:
    """Convert a duration string to a timedelta. Raises ValueError if malformed."""
    text = value.strip().lower()
    if not text:
        raise ValueError("Empty duration")
    if text.isdigit():
        return _to_timedelta(int(text), value)

    seconds = 0
    pos = 0
    for match in _PART.finditer(text):
        if match.start() != pos:
            break
        seconds += int(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return _to_timedelta(seconds, value)
