from __future__ import annotations

import dataclasses
from datetime import date, datetime, tzinfo
from typing import Any, Iterable, Mapping, Optional, Tuple, TypeVar, Union

from .errors import MalformedRecord
from .models import DateRange, GrowthAccountingResult
from .periods import add_months, normalize_period

RowT = TypeVar("RowT")

SERIES_DATE_FIELDS = {
    "mau_growth_accounting": "month",
    "mrr_growth_accounting": "month",
    "ltv_cumulative_cohort": "first_month",
}


def _field_value(row: Any, field_name: str) -> Any:
    if isinstance(row, Mapping):
        value = row.get(field_name)
    else:
        value = getattr(row, field_name, None)
    if value is None:
        raise MalformedRecord(f"Row has no {field_name}", record=row)
    return value


def filter_series(
    rows: Iterable[RowT],
    date_range: Optional[DateRange],
    field_name: str,
    source_timezone: Union[str, tzinfo, None] = None,
) -> Tuple[RowT, ...]:
    """
    Keep rows whose ``field_name`` month lies inside ``date_range`` (inclusive).

    Rows may be dataclasses or plain mappings as returned by the backend. Order
    is preserved. An open range (either bound missing) returns every row.
    """

    rows = tuple(rows)
    if date_range is None or date_range.is_open:
        return rows
    start = normalize_period(date_range.start, source_timezone)
    end = normalize_period(date_range.end, source_timezone)
    return tuple(
        row for row in rows if start <= normalize_period(_field_value(row, field_name), source_timezone) <= end
    )


def filter_growth_data(
    result: GrowthAccountingResult,
    date_range: Optional[DateRange],
) -> GrowthAccountingResult:
    """Apply the dashboard date picker to all three series; ``result`` is left untouched."""
    if date_range is None or date_range.is_open:
        return result
    return dataclasses.replace(
        result,
        **{
            name: filter_series(getattr(result, name), date_range, field_name)
            for name, field_name in SERIES_DATE_FIELDS.items()
        },
    )


def default_date_range(today: Union[date, datetime]) -> DateRange:
    """
    Initial picker window: the twelve months before last month through last month.

    Matches ``startOfMonth(lastMonth - 1 year)`` .. ``endOfMonth(lastMonth)``;
    the end bound is expressed as last month's key, which compares the same way.
    """

    last_month = add_months(normalize_period(today), -1)
    return DateRange(start=add_months(last_month, -12), end=last_month)
