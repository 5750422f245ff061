"""
Calendar-month period keys.

Every date that enters the pipeline goes through :func:`normalize_period`, which
maps it to the first instant of its calendar month in UTC. Cohort bucketing and
date-range comparisons rely on exact equality of these keys, so naive values with
a clock time are localized to their source zone before conversion, never to the
host's zone. Values of month or day precision keep their calendar month.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone, tzinfo
from typing import Iterator, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidTimestamp

UTC = timezone.utc

TimestampLike = Union[datetime, date, str, int, float]

_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _coerce_timezone(name: Union[str, tzinfo, None]) -> tzinfo:
    if name is None:
        return UTC
    if isinstance(name, tzinfo):
        return name
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
        raise InvalidTimestamp(f"Unknown timezone {name!r}", record=name) from exc


def _parse_string(raw: str) -> Union[date, datetime]:
    """Parse ``YYYY-MM`` and ``YYYY-MM-DD`` to a ``date``; anything with a clock time to a ``datetime``."""
    text = raw.strip()
    if not text:
        raise InvalidTimestamp("Empty timestamp", record=raw)
    match = _YEAR_MONTH_RE.match(text)
    try:
        if match:
            return date(int(match.group(1)), int(match.group(2)), 1)
        if _DATE_ONLY_RE.match(text):
            return date.fromisoformat(text)
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidTimestamp(f"Cannot parse timestamp {raw!r}", record=raw) from exc


def _to_utc(value: TimestampLike, tz: tzinfo) -> datetime:
    if isinstance(value, bool) or value is None:
        raise InvalidTimestamp(f"Cannot parse timestamp {value!r}", record=value)
    if isinstance(value, str):
        value = _parse_string(value)

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        # Month or day precision carries no clock time, so the month is the same in every zone.
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidTimestamp(f"Cannot parse timestamp {value!r}", record=value)
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError, ValueError) as exc:
            raise InvalidTimestamp(f"Epoch value out of range: {value!r}", record=value) from exc
    else:
        raise InvalidTimestamp(f"Unsupported timestamp type {type(value).__name__}", record=value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(UTC)


def normalize_period(value: TimestampLike, source_timezone: Union[str, tzinfo, None] = None) -> datetime:
    """
    Return the first instant of the UTC calendar month containing ``value``.

    ``source_timezone`` applies to naive datetimes and to ISO strings with a
    clock time but no offset; aware values keep their own offset. Dates and
    ``YYYY-MM`` / ``YYYY-MM-DD`` strings name their calendar month directly.
    Raises ``InvalidTimestamp`` for anything that cannot be read as a point in
    time.
    """

    moment = _to_utc(value, _coerce_timezone(source_timezone))
    return datetime(moment.year, moment.month, 1, tzinfo=UTC)


def period_key(value: TimestampLike, source_timezone: Union[str, tzinfo, None] = None) -> str:
    """Serialize a period as ``YYYY-MM-01T00:00:00Z``."""
    period = normalize_period(value, source_timezone)
    return period.strftime("%Y-%m-%dT%H:%M:%SZ")


def add_months(period: datetime, months: int) -> datetime:
    total = period.year * 12 + (period.month - 1) + months
    return datetime(total // 12, total % 12 + 1, 1, tzinfo=UTC)


def months_between(start: datetime, end: datetime) -> int:
    """Whole calendar months from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def iter_months(start: datetime, end: datetime) -> Iterator[datetime]:
    """Yield month keys from ``start`` through ``end`` inclusive."""
    cursor = normalize_period(start)
    last = normalize_period(end)
    while cursor <= last:
        yield cursor
        cursor = add_months(cursor, 1)


def previous_month(period: datetime) -> datetime:
    return add_months(period, -1)


def month_label(period: datetime) -> str:
    """Short display label such as ``Jan 2024``."""
    return period.strftime("%b %Y")
