"""Small time helpers."""

from datetime import timedelta

# Seconds between 0001-01-01 and the Unix epoch; truncation is relative to the former.
_ZERO_TIME_OFFSET = 62135596800
_MICROSECOND = timedelta(microseconds=1)


def timestamp_truncate(ts: int, duration: timedelta) -> int:
    """Round a Unix timestamp down to a multiple of duration."""
    step = duration // _MICROSECOND
    if step <= 0:
        return ts
    micros = (ts + _ZERO_TIME_OFFSET) * 1_000_000
    return (micros - micros % step) // 1_000_000 - _ZERO_TIME_OFFSET