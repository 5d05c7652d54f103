"""Helpers for nanosecond Unix timestamps."""

from __future__ import annotations

import time

_NS_PER_SECOND = 1_000_000_000


def unix_time_ns() -> int:
    """Current Unix time in nanoseconds."""
    return time.time_ns()


def unix_time_to_date_time(unix_time_ns: int) -> tuple[str, str]:
    """Split a nanosecond timestamp into local ``YYYY-MM-DD`` and ``HH:MM:SS``.

    Returns ``("error", "error")`` if the time cannot be converted.
    """
    seconds = abs(unix_time_ns) // _NS_PER_SECOND
    if unix_time_ns < 0:
        seconds = -seconds
    try:
        local = time.localtime(seconds)
        return time.strftime("%Y-%m-%d", local), time.strftime("%H:%M:%S", local)
    except (OverflowError, OSError, ValueError):
        return "error", "error"