"""Parsing of the date and time text formats that databases return."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

_DATE = r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
_CLOCK = (
    r"(?P<hour>\d{1,2}):(?P<minute>\d{2}):(?P<second>\d{2})"
    r"(?:\.(?P<frac>\d+))?"
)
_OFFSET_HMS = r"(?P<sign>[+-])(?P<oh>\d{2}):(?P<om>\d{2}):(?P<os>\d{2})"
_OFFSET_HM = r"(?P<sign>[+-])(?P<oh>\d{2}):(?P<om>\d{2})"
_OFFSET_H = r"(?P<sign>[+-])(?P<oh>\d{2})"

_OFFSETS = {"hms": _OFFSET_HMS, "hm": _OFFSET_HM, "h": _OFFSET_H}

_TIMESTAMP_TZ = {k: re.compile(_DATE + " " + _CLOCK + v) for k, v in _OFFSETS.items()}
_TIME_TZ = {k: re.compile(_CLOCK + v) for k, v in _OFFSETS.items()}
_TIMESTAMP = re.compile(_DATE + " " + _CLOCK)
_RFC3339 = re.compile(_DATE + "T" + _CLOCK + r"(?:(?P<z>Z)|" + _OFFSET_HM + ")")
_CLOCK_ONLY = re.compile(_CLOCK)
_DATE_ONLY = re.compile(_DATE)


def _error(s: str) -> ValueError:
    return ValueError(f"can't parse time={s!r}")


def _offset_kind(s: str) -> str | None:
    for pos, kind in ((6, "hm"), (3, "h"), (9, "hms")):
        if len(s) >= pos and s[-pos] in "+-":
            return kind
    return None


def _match(pattern: re.Pattern[str], s: str) -> datetime:
    m = pattern.fullmatch(s)
    if m is None:
        raise _error(s)
    g = m.groupdict()
    try:
        tz = timezone.utc
        if g.get("sign"):
            secs = int(g["oh"]) * 3600 + int(g.get("om") or 0) * 60 + int(g.get("os") or 0)
            if g["sign"] == "-":
                secs = -secs
            if secs:
                tz = timezone(timedelta(seconds=secs))
        frac = g.get("frac") or ""
        micro = int((frac + "000000")[:6])
        return datetime(
            int(g["year"]) if g.get("year") else 1,
            int(g["month"]) if g.get("month") else 1,
            int(g["day"]) if g.get("day") else 1,
            int(g.get("hour") or 0),
            int(g.get("minute") or 0),
            int(g.get("second") or 0),
            micro,
            tzinfo=tz,
        )
    except ValueError:
        raise _error(s) from None


def parse_time(s: str) -> datetime:
    """Parse a date, time, timestamp or timestamp with offset.

    Values without an offset are taken as UTC. Values without a date get
    1 January of year 1. Fractions finer than a microsecond are dropped.
    Raises ValueError for text in none of the known forms.
    """
    length = len(s)

    if length >= len("2006-01-02 15:04:05"):
        if s[10] == " ":
            kind = _offset_kind(s)
            if kind is not None:
                return _match(_TIMESTAMP_TZ[kind], s)
            return _match(_TIMESTAMP, s)
        if s[10] == "T":
            return _match(_RFC3339, s)

    if length >= len("15:04:05-07"):
        kind = _offset_kind(s)
        if kind is not None:
            return _match(_TIME_TZ[kind], s)

    if length < len("15:04:05"):
        raise _error(s)

    if s[2] == ":":
        return _match(_CLOCK_ONLY, s)
    return _match(_DATE_ONLY, s)