"""Conversion of timestamps to ClickHouse day strings, with switchable modes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable


def _local_date(ts: int) -> date:
    return datetime.fromtimestamp(ts).date()


def _utc_date(ts: int) -> date:
    return datetime.fromtimestamp(ts, timezone.utc).date()


def _time_date(t: datetime) -> date:
    return date(t.year, t.month, t.day)


def _time_utc_date(t: datetime) -> date:
    return t.astimezone(timezone.utc).date()


def default_timestamp_to_days_format(ts: int) -> str:
    """Local calendar date of a timestamp, as the storage writer formats it."""
    return _local_date(ts).isoformat()


def default_time_to_days_format(t: datetime) -> str:
    """Calendar date of t in its own time zone."""
    return _time_date(t).isoformat()


def utc_timestamp_to_days_format(ts: int) -> str:
    """UTC calendar date of a timestamp."""
    return _utc_date(ts).isoformat()


def utc_time_to_days_format(t: datetime) -> str:
    """UTC calendar date of t."""
    return _time_utc_date(t).isoformat()


def min_timestamp_to_days_format(ts: int) -> str:
    """Earlier of the local and UTC dates of a timestamp."""
    return min(_local_date(ts), _utc_date(ts)).isoformat()


def min_time_to_days_format(t: datetime) -> str:
    """Earlier of the local and UTC dates of t."""
    return min(_time_date(t), _time_utc_date(t)).isoformat()


def max_timestamp_to_days_format(ts: int) -> str:
    """Later of the local and UTC dates of a timestamp."""
    return max(_local_date(ts), _utc_date(ts)).isoformat()


def max_time_to_days_format(t: datetime) -> str:
    """Later of the local and UTC dates of t."""
    return max(_time_date(t), _time_utc_date(t)).isoformat()


@dataclass
class _Formats:
    from_timestamp: Callable[[int], str]
    from_time: Callable[[datetime], str]
    until_timestamp: Callable[[int], str]
    until_time: Callable[[datetime], str]


_active = _Formats(
    default_timestamp_to_days_format,
    default_time_to_days_format,
    default_timestamp_to_days_format,
    default_time_to_days_format,
)


def set_default() -> None:
    """Use local dates, matching the storage writer's default conversion."""
    _active.from_timestamp = default_timestamp_to_days_format
    _active.from_time = default_time_to_days_format
    _active.until_timestamp = default_timestamp_to_days_format
    _active.until_time = default_time_to_days_format


def set_utc() -> None:
    """Use UTC dates."""
    _active.from_timestamp = utc_timestamp_to_days_format
    _active.from_time = utc_time_to_days_format
    _active.until_timestamp = utc_timestamp_to_days_format
    _active.until_time = utc_time_to_days_format


def set_both() -> None:
    """Widen ranges to cover both local and UTC dates."""
    _active.from_timestamp = min_timestamp_to_days_format
    _active.from_time = min_time_to_days_format
    _active.until_timestamp = max_timestamp_to_days_format
    _active.until_time = max_time_to_days_format


def from_timestamp_to_days_format(ts: int) -> str:
    """Start date of a range in the active mode."""
    return _active.from_timestamp(ts)


def from_time_to_days_format(t: datetime) -> str:
    """Start date of a range in the active mode."""
    return _active.from_time(t)


def until_timestamp_to_days_format(ts: int) -> str:
    """End date of a range in the active mode."""
    return _active.until_timestamp(ts)


def until_time_to_days_format(t: datetime) -> str:
    """End date of a range in the active mode."""
    return _active.until_time(t)