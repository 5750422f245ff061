"""
Validation of the backend's pre-shaped growth-accounting bodies.

The backend answers with three arrays (``mau_growth_accounting``,
``mrr_growth_accounting``, ``ltv_cumulative_cohort``) whose month columns are
ISO-8601 timestamps and whose churn columns are negated for chart stacking.
These models normalize the months, turn churn back into magnitudes and convert
everything into the dataclasses the projector and filter work on.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Union

from pydantic import BaseModel, ValidationError, field_validator

from .errors import MalformedRecord
from .models import GrowthAccountingResult, GrowthAccountingRow, MAUGrowthAccountingRow, MRRGrowthAccountingRow
from .periods import normalize_period

Number = Union[int, float]


def _month(value: Any) -> datetime:
    return normalize_period(value)


def _magnitude(value: Number) -> Number:
    return abs(value)


class MAUGrowthAccountingPayload(BaseModel):
    month: datetime
    mau: int
    retained: int = 0
    new: int = 0
    resurrected: int = 0
    churned: int = 0

    @field_validator("month", mode="before")
    @classmethod
    def normalize_month(cls, value: Any) -> datetime:
        return _month(value)

    @field_validator("churned")
    @classmethod
    def churn_magnitude(cls, value: int) -> int:
        return _magnitude(value)

    def to_row(self) -> MAUGrowthAccountingRow:
        return MAUGrowthAccountingRow(
            month=self.month,
            mau=self.mau,
            retained=self.retained,
            new=self.new,
            resurrected=self.resurrected,
            churned=self.churned,
        )


class MRRGrowthAccountingPayload(BaseModel):
    month: datetime
    rev: Number
    retained: Number = 0
    new: Number = 0
    resurrected: Number = 0
    expansion: Number = 0
    churned: Number = 0
    contraction: Number = 0

    @field_validator("month", mode="before")
    @classmethod
    def normalize_month(cls, value: Any) -> datetime:
        return _month(value)

    @field_validator("churned", "contraction")
    @classmethod
    def loss_magnitude(cls, value: Number) -> Number:
        return _magnitude(value)

    def to_row(self) -> MRRGrowthAccountingRow:
        return MRRGrowthAccountingRow(
            month=self.month,
            rev=self.rev,
            retained=self.retained,
            new=self.new,
            resurrected=self.resurrected,
            expansion=self.expansion,
            churned=self.churned,
            contraction=self.contraction,
        )


class CohortRowPayload(BaseModel):
    """
    One ``ltv_cumulative_cohort`` row.

    The backend does not ship per-row transition counts for the cohort table,
    so ``new``/``retained``/``resurrected``/``churned`` default to zero.
    """

    first_month: datetime
    active_month: datetime
    months_since_first: int
    users: int
    cohort_num_users: int
    retained_pctg: float = 0.0
    inc_amt: Number = 0
    cum_amt: Number = 0
    cum_amt_per_user: float = 0.0
    new: int = 0
    retained: int = 0
    resurrected: int = 0
    churned: int = 0

    @field_validator("first_month", "active_month", mode="before")
    @classmethod
    def normalize_months(cls, value: Any) -> datetime:
        return _month(value)

    @field_validator("months_since_first", "users", "cohort_num_users")
    @classmethod
    def non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be non-negative")
        return value

    def to_row(self) -> GrowthAccountingRow:
        return GrowthAccountingRow(
            first_month=self.first_month,
            active_month=self.active_month,
            months_since_first=self.months_since_first,
            users=self.users,
            cohort_num_users=self.cohort_num_users,
            new=self.new,
            retained=self.retained,
            resurrected=self.resurrected,
            churned=_magnitude(self.churned),
            inc_amt=self.inc_amt,
            cum_amt=self.cum_amt,
            cum_amt_per_user=self.cum_amt_per_user,
            retained_pctg=self.retained_pctg,
        )


class GrowthDataPayload(BaseModel):
    mau_growth_accounting: List[MAUGrowthAccountingPayload] = []
    mrr_growth_accounting: List[MRRGrowthAccountingPayload] = []
    ltv_cumulative_cohort: List[CohortRowPayload] = []

    def to_result(self) -> GrowthAccountingResult:
        return GrowthAccountingResult(
            mau_growth_accounting=tuple(item.to_row() for item in self.mau_growth_accounting),
            mrr_growth_accounting=tuple(item.to_row() for item in self.mrr_growth_accounting),
            ltv_cumulative_cohort=tuple(item.to_row() for item in self.ltv_cumulative_cohort),
        )


def parse_growth_data(body: Union[Mapping[str, Any], str, bytes]) -> GrowthAccountingResult:
    """
    Validate a growth-accounting response body (dict or raw JSON).

    Raises ``MalformedRecord`` with pydantic's error report when the body does
    not match the expected shape or carries an unparsable month.
    """

    try:
        if isinstance(body, (str, bytes)):
            payload = GrowthDataPayload.model_validate_json(body)
        else:
            payload = GrowthDataPayload.model_validate(body)
    except ValidationError as exc:
        raise MalformedRecord(f"Invalid growth accounting body: {exc}", record=body) from exc
    return payload.to_result()
