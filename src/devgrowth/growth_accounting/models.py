from __future__ import annotations

import math
from dataclasses import dataclass, fields, is_dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .errors import MalformedRecord
from .periods import TimestampLike, normalize_period

Amount = Union[int, float]


def _coerce_subject_id(value: Any) -> str:
    if value is None or isinstance(value, bool):
        raise MalformedRecord("Record is missing subject_id", record=value)
    subject_id = str(value).strip()
    if not subject_id:
        raise MalformedRecord("Record is missing subject_id", record=value)
    return subject_id


def _coerce_amount(value: Any) -> Amount:
    if value is None or isinstance(value, bool):
        raise MalformedRecord(f"Invalid amount {value!r}", record=value)
    if isinstance(value, int):
        amount: Amount = value
    else:
        try:
            amount = float(value)
        except (TypeError, ValueError) as exc:
            raise MalformedRecord(f"Invalid amount {value!r}", record=value) from exc
        if not math.isfinite(amount):
            raise MalformedRecord(f"Invalid amount {value!r}", record=value)
    if amount < 0:
        raise MalformedRecord(f"Amount must be non-negative, got {value!r}", record=value)
    return amount


@dataclass(frozen=True)
class ActivityRecord:
    """
    One subject observed in one calendar month.

    ``period`` is always a normalized month key (first instant of the month,
    UTC). ``amount`` is the commit count or revenue for that month; a recorded
    zero marks the subject as explicitly inactive.
    """

    subject_id: str
    period: datetime
    amount: Amount = 1

    @classmethod
    def create(
        cls,
        subject_id: Any,
        timestamp: TimestampLike,
        amount: Any = 1,
        source_timezone: Union[str, tzinfo, None] = None,
    ) -> "ActivityRecord":
        return cls(
            subject_id=_coerce_subject_id(subject_id),
            period=normalize_period(timestamp, source_timezone),
            amount=_coerce_amount(amount),
        )


@dataclass(frozen=True)
class SkippedRecord:
    """Diagnostic for an input record that was dropped during intake."""

    index: int
    kind: str
    message: str
    record: Any = None


@dataclass(frozen=True)
class GrowthAccountingRow:
    first_month: datetime
    active_month: datetime
    months_since_first: int
    users: int
    cohort_num_users: int
    new: int
    retained: int
    resurrected: int
    churned: int
    inc_amt: Amount
    cum_amt: Amount
    cum_amt_per_user: float
    retained_pctg: float


@dataclass(frozen=True)
class MAUGrowthAccountingRow:
    month: datetime
    mau: int
    retained: int
    new: int
    resurrected: int
    churned: int


@dataclass(frozen=True)
class MRRGrowthAccountingRow:
    month: datetime
    rev: Amount
    retained: Amount
    new: Amount
    resurrected: Amount
    expansion: Amount
    churned: Amount
    contraction: Amount


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive month window used by the dashboard's date picker.

    Either bound may be ``None``, which disables filtering entirely.
    """

    start: Optional[TimestampLike] = None
    end: Optional[TimestampLike] = None

    @property
    def is_open(self) -> bool:
        return self.start is None or self.end is None


class ChartType(Enum):
    LOGO_RETENTION = "logo_retention"
    COHORT_LTV = "cohort_ltv"
    COMMIT_RETENTION = "commit_retention"


@dataclass(frozen=True)
class DegenerateCohort:
    """A cohort whose size is zero, so its per-user ratios are undefined."""

    first_month: datetime
    reason: str = "cohort_num_users is 0"


@dataclass(frozen=True)
class ProjectedPoint:
    months_since_first: int
    active_month: datetime
    value: float
    degenerate: bool = False
    approximated: bool = False


@dataclass(frozen=True)
class CohortSeries:
    cohort: datetime
    label: str
    points: Tuple[ProjectedPoint, ...]


@dataclass(frozen=True)
class ChartProjection:
    chart_type: ChartType
    title: str
    y_axis_label: str
    unit: Optional[str]
    labels: Tuple[int, ...]
    series: Tuple[CohortSeries, ...]
    degenerate_cohorts: Tuple[DegenerateCohort, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return _serialize(self)


@dataclass(frozen=True)
class GrowthAccountingResult:
    """
    The three series the dashboard charts, plus intake diagnostics.

    Field names match the keys of the backend's growth-accounting response so
    that :meth:`as_dict` can be shipped to the UI unchanged.
    """

    mau_growth_accounting: Tuple[MAUGrowthAccountingRow, ...] = ()
    mrr_growth_accounting: Tuple[MRRGrowthAccountingRow, ...] = ()
    ltv_cumulative_cohort: Tuple[GrowthAccountingRow, ...] = ()
    skipped: Tuple[SkippedRecord, ...] = ()

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def as_dict(self) -> Dict[str, Any]:
        """
        Convert the nested dataclasses into a JSON-serialisable structure.

        Month keys become ``YYYY-MM-01T00:00:00Z`` strings; skipped raw records
        are reported by index and message only.
        """

        return {
            "mau_growth_accounting": [_serialize(row) for row in self.mau_growth_accounting],
            "mrr_growth_accounting": [_serialize(row) for row in self.mrr_growth_accounting],
            "ltv_cumulative_cohort": [_serialize(row) for row in self.ltv_cumulative_cohort],
            "skipped": [
                {"index": item.index, "kind": item.kind, "message": item.message}
                for item in self.skipped
            ],
            "skipped_count": self.skipped_count,
        }


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.strftime("%Y-%m-%dT%H:%M:%SZ")
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {item.name: _serialize(getattr(obj, item.name)) for item in fields(obj)}
    if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes)):
        return [_serialize(item) for item in obj]
    return obj
