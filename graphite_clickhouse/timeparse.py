"""Parsing of Graphite time parameters into Unix timestamps."""

from __future__ import annotations

import math
import re
import time
from datetime import datetime, timedelta, timezone as dt_timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from graphite_clickhouse.utils import timestamp_truncate as _truncate_timestamp


class BadTimeError(ValueError):
    """A time or interval string cannot be parsed."""


class _LocalTimezone(tzinfo):
    """The system's local time zone, following its DST rules."""

    def utcoffset(self, dt: datetime | None) -> timedelta:
        if dt is None:
            return timedelta(seconds=-time.timezone)
        try:
            stamp = time.mktime(
                (dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second, 0, 0, -1)
            )
            return timedelta(seconds=time.localtime(stamp).tm_gmtoff)
        except (OverflowError, ValueError, OSError):
            return timedelta(seconds=-time.timezone)

    def dst(self, dt: datetime | None) -> None:
        return None

    def tzname(self, dt: datetime | None) -> str:
        return time.tzname[0]

    def fromutc(self, dt: datetime) -> datetime:
        stamp = math.floor((dt.replace(tzinfo=None) - _NAIVE_EPOCH).total_seconds())
        local = time.localtime(stamp)
        return datetime(*local[:6], microsecond=dt.microsecond, tzinfo=self)

    def __repr__(self) -> str:
        return "Local"


_NAIVE_EPOCH = datetime(1970, 1, 1)
_EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)
_MICROSECOND = timedelta(microseconds=1)
# Microseconds between 0001-01-01 and the Unix epoch; truncation is relative to the former.
_ZERO_TIME_US = 62135596800 * 1_000_000
LOCAL = _LocalTimezone()

_UNITS = {
    name: seconds
    for names, seconds in (
        (("s", "sec", "secs", "second", "seconds"), 1),
        (("min", "mins", "minute", "minutes"), 60),
        (("h", "hour", "hours"), 3600),
        (("d", "day", "days"), 86400),
        (("w", "week", "weeks"), 7 * 86400),
        (("mon", "month", "months"), 30 * 86400),
        (("y", "year", "years"), 365 * 86400),
    )
    for name in names
}
_INTERVAL_PART = re.compile(r"([0-9]*)([^0-9]*)")
_SIGNED_INT = re.compile(r"[+-]?[0-9]+")
_DIGITS = re.compile(r"[0-9]+")
_NAMED_TIMES = {"midnight": (0, 0), "noon": (12, 0), "teatime": (16, 0)}
_DATE_FORMATS = (
    (re.compile(r"([0-9]{4})([0-9]{2})([0-9]{2})"), False),
    (re.compile(r"([0-9]{2})/([0-9]{2})/([0-9]{2})"), True),
)


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value >= 1 << 31 else value


def interval_string(s: str, default_sign: int) -> int:
    """Parse an interval such as ``-1day`` or ``1h30min`` into seconds."""
    if not s:
        raise BadTimeError("empty interval")
    sign = default_sign
    if s[0] == "-":
        sign, s = -1, s[1:]
    elif s[0] == "+":
        sign, s = 1, s[1:]
    total = 0
    pos = 0
    while pos < len(s):
        match = _INTERVAL_PART.match(s, pos)
        number, unit = match.groups()
        pos = match.end()
        if unit not in _UNITS:
            raise BadTimeError(f"unknown time units {unit!r}")
        if not number:
            raise BadTimeError(f"missing number before {unit!r}")
        total += sign * int(number) * _UNITS[unit]
    return _int32(total)


def _parse_time(s: str) -> tuple[int, int]:
    if s in _NAMED_TIMES:
        return _NAMED_TIMES[s]
    parts = s.split(":")
    if len(parts) != 2 or not all(_SIGNED_INT.fullmatch(p) for p in parts):
        raise BadTimeError(f"bad time {s!r}")
    return int(parts[0]), int(parts[1])


def _parse_time_or_midnight(s: str) -> tuple[int, int]:
    try:
        return _parse_time(s)
    except BadTimeError:
        return 0, 0


def _at(day: datetime, hour: int, minute: int, tz: tzinfo) -> datetime:
    base = datetime(day.year, day.month, day.day, tzinfo=tz)
    return base + timedelta(hours=hour, minutes=minute)


def _unix(t: datetime) -> int:
    return math.floor(t.timestamp())


def _parse_date(ds: str, tz: tzinfo) -> datetime | None:
    for pattern, short in _DATE_FORMATS:
        match = pattern.fullmatch(ds)
        if not match:
            continue
        a, b, c = (int(g) for g in match.groups())
        if short:
            year = c + (1900 if c >= 69 else 2000)
            month, day = a, b
        else:
            year, month, day = a, b, c
        try:
            return datetime(year, month, day, tzinfo=tz)
        except ValueError:
            continue
    return None


def _aware(t: datetime) -> datetime:
    return t if t.tzinfo is not None else t.replace(tzinfo=LOCAL)


def date_param_to_epoch(
    s: str, tz: tzinfo, now: datetime, truncate: timedelta = timedelta(0)
) -> int:
    """Turn a Graphite from/until parameter into a Unix timestamp; 0 when invalid."""
    if not s:
        return 0
    now = _aware(now)

    if s[0] in "-+":
        try:
            offset = interval_string(s, -1 if s[0] == "-" else 1)
        except BadTimeError:
            return 0
        return _unix(now) + offset

    if s == "now":
        return _unix(now)
    if s == "rnow":
        return _unix(time_truncate(now, truncate))
    if s in _NAMED_TIMES:
        hour, minute = _NAMED_TIMES[s]
        return _unix(_at(now, hour, minute, tz))

    # eight digits would be a date, not seconds
    if _DIGITS.fullmatch(s) and len(s) != 8:
        return int(s)

    s = s.replace("_", " ", 1)
    split = s.split()
    ts = ds = ""

    if len(split) == 1:
        delim = next((i for i, ch in enumerate(s) if ch in "+-"), -1)
        if delim == -1:
            ds = s
        else:
            ds = s[:delim]
            if ds in ("now", "today"):
                t = now
            elif ds in ("rnow", "rtoday"):
                t = time_truncate(now, truncate)
            elif ds in _NAMED_TIMES:
                hour, minute = _parse_time_or_midnight(s)
                t = _at(now, hour, minute, tz)
            elif ds == "yesterday":
                t = now - timedelta(days=1)
            elif ds == "tomorrow":
                t = now + timedelta(days=1)
            else:
                return 0

            total = 0
            rest = s[delim:]
            while rest:
                nxt = next((i for i, ch in enumerate(rest[1:], 1) if ch in "+-"), -1)
                if nxt == -1:
                    chunk, rest = rest, ""
                else:
                    chunk, rest = rest[:nxt], rest[nxt:]
                try:
                    offset = interval_string(chunk, 1)
                except BadTimeError:
                    if not _SIGNED_INT.fullmatch(chunk) or not -(2**31) <= int(chunk) < 2**31:
                        return 0
                    offset = int(chunk)
                total += offset
            return _unix(t) + total
    elif len(split) == 2:
        ts, ds = split
    elif len(split) > 2:
        return 0

    if ds in ("now", "today"):
        t = now
    elif ds in ("rnow", "rtoday"):
        t = time_truncate(now, truncate)
    elif ds in _NAMED_TIMES:
        hour, minute = _parse_time_or_midnight(s)
        t = _at(now, hour, minute, tz)
    elif ds == "yesterday":
        t = now - timedelta(days=1)
    elif ds == "ryesterday":
        t = time_truncate(now, truncate) - timedelta(days=1)
    elif ds == "tomorrow":
        t = now + timedelta(days=1)
    elif ds == "rtomorrow":
        t = time_truncate(now, truncate) + timedelta(days=1)
    else:
        parsed = _parse_date(ds, tz)
        if parsed is None:
            return 0
        t = parsed

    hour, minute = _parse_time_or_midnight(ts) if ts else (0, 0)
    return _unix(_at(t, hour, minute, tz))


def timezone(name: str) -> tzinfo:
    """Load a time zone by name; an empty name or ``Local`` is the system zone."""
    if name in ("", "Local"):
        return LOCAL
    if name == "UTC":
        return dt_timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown time zone {name!r}") from exc


def timestamp_truncate(ts: int, truncate: timedelta) -> int:
    """Round a timestamp down to a multiple of truncate; 0 values pass through."""
    if ts == 0 or not truncate:
        return ts
    return _truncate_timestamp(ts, truncate)


def time_truncate(tm: datetime, truncate: timedelta) -> datetime:
    """Round a time down to a multiple of truncate, keeping its time zone."""
    if not truncate:
        return tm
    step = truncate // _MICROSECOND
    if step <= 0:
        return tm
    aware = _aware(tm)
    micros = (aware - _EPOCH) // _MICROSECOND + _ZERO_TIME_US
    micros -= micros % step
    result = _EPOCH + timedelta(microseconds=micros - _ZERO_TIME_US)
    return result.astimezone(aware.tzinfo)