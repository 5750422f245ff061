from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Collection, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .cohorts import CohortAssignment, assign_cohorts
from .config import PipelineConfig
from .dataset import ActivityDataset
from .filters import filter_series
from .models import (
    ActivityRecord,
    Amount,
    ChartProjection,
    ChartType,
    DateRange,
    GrowthAccountingResult,
    GrowthAccountingRow,
    MAUGrowthAccountingRow,
    MRRGrowthAccountingRow,
)
from .periods import TimestampLike, iter_months, normalize_period, previous_month
from .projections import project_cohort_rows

logger = logging.getLogger(__name__)


def _sum_amounts(dataset: ActivityDataset, subjects: Iterable[str], period: datetime) -> Amount:
    # Sorted so float totals are identical from run to run.
    total: Amount = 0
    for subject_id in sorted(subjects):
        total += dataset.amount(subject_id, period)
    return total


class GrowthAccountingService:
    """
    Growth accounting for one analysis scope (a repository or a collection).

    Produces the monthly cohort table, the MAU growth-accounting series and
    the MRR growth-accounting series from a complete activity snapshot. Every
    call recomputes from the snapshot; nothing is cached between calls.
    """

    def __init__(
        self,
        dataset: Union[ActivityDataset, Iterable[ActivityRecord]],
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        if isinstance(dataset, ActivityDataset):
            self.dataset = dataset
        else:
            self.dataset = ActivityDataset(records=tuple(dataset))
        self.cohorts: CohortAssignment = assign_cohorts(self.dataset.records)

    @classmethod
    def from_payloads(cls, payloads: Iterable[Any], config: Optional[PipelineConfig] = None) -> "GrowthAccountingService":
        cfg = config or PipelineConfig()
        return cls(ActivityDataset.from_payloads(payloads, config=cfg), config=cfg)

    @classmethod
    def from_commits(
        cls,
        commits: Iterable[Any],
        repository_ids: Optional[Collection[int]] = None,
        config: Optional[PipelineConfig] = None,
    ) -> "GrowthAccountingService":
        cfg = config or PipelineConfig()
        return cls(ActivityDataset.from_commits(commits, repository_ids=repository_ids, config=cfg), config=cfg)

    def resolve_horizon(self, horizon: Optional[TimestampLike] = None) -> Optional[datetime]:
        """Explicit argument, then the configured horizon, then the latest month in the data."""
        candidate = horizon if horizon is not None else self.config.horizon
        if candidate is not None:
            return normalize_period(candidate, self.config.source_timezone)
        return self.dataset.latest_period

    def build(self, horizon: Optional[TimestampLike] = None) -> GrowthAccountingResult:
        last = self.resolve_horizon(horizon)
        result = GrowthAccountingResult(
            mau_growth_accounting=self.mau_growth_accounting(last),
            mrr_growth_accounting=self.mrr_growth_accounting(last),
            ltv_cumulative_cohort=self.cohort_table(last),
            skipped=tuple(self.dataset.skipped),
        )
        logger.debug(
            "Built growth accounting: %d cohorts, %d cohort rows, %d months, %d skipped records",
            len(self.cohorts.members),
            len(result.ltv_cumulative_cohort),
            len(result.mau_growth_accounting),
            result.skipped_count,
        )
        return result

    def cohort_table(self, horizon: Optional[TimestampLike] = None) -> Tuple[GrowthAccountingRow, ...]:
        """
        One row per (cohort, month) from each cohort's first month to the horizon.

        Months without activity are still emitted so ``months_since_first`` is
        contiguous. Cohorts that start after the horizon produce no rows.
        """

        last = self.resolve_horizon(horizon)
        if last is None:
            return ()
        rows: List[GrowthAccountingRow] = []
        for first_period in self.cohorts.cohort_keys():
            rows.extend(self._cohort_rows(first_period, last))
        return tuple(rows)

    def _cohort_rows(self, first_period: datetime, last: datetime) -> List[GrowthAccountingRow]:
        members = self.cohorts.members[first_period]
        cohort_num_users = len(members)
        rows: List[GrowthAccountingRow] = []
        previous_active: FrozenSet[str] = frozenset()
        cum_amt: Amount = 0

        for months_since_first, period in enumerate(iter_months(first_period, last)):
            active = self.dataset.active_subjects(period, among=members)
            is_first_month = months_since_first == 0
            inc_amt = _sum_amounts(self.dataset, active, period)
            cum_amt += inc_amt
            rows.append(
                GrowthAccountingRow(
                    first_month=first_period,
                    active_month=period,
                    months_since_first=months_since_first,
                    users=len(active),
                    cohort_num_users=cohort_num_users,
                    new=len(active) if is_first_month else 0,
                    retained=len(active & previous_active),
                    resurrected=0 if is_first_month else len(active - previous_active),
                    churned=len(previous_active - active),
                    inc_amt=inc_amt,
                    cum_amt=cum_amt,
                    cum_amt_per_user=(
                        cum_amt / cohort_num_users if cohort_num_users else self.config.degenerate_value
                    ),
                    retained_pctg=(
                        len(active) / cohort_num_users if cohort_num_users else self.config.degenerate_value
                    ),
                )
            )
            previous_active = active
        return rows

    def _series_months(self, horizon: Optional[TimestampLike]) -> Sequence[datetime]:
        last = self.resolve_horizon(horizon)
        cohort_keys = self.cohorts.cohort_keys()
        if last is None or not cohort_keys:
            return ()
        return tuple(iter_months(cohort_keys[0], last))

    def mau_growth_accounting(self, horizon: Optional[TimestampLike] = None) -> Tuple[MAUGrowthAccountingRow, ...]:
        """
        Scope-wide monthly active subjects split into new/retained/resurrected, plus churn.

        mau(t) = new(t) + retained(t) + resurrected(t)
        mau(t - 1 month) = retained(t) + churned(t)
        """

        rows: List[MAUGrowthAccountingRow] = []
        previous_active: FrozenSet[str] = frozenset()
        for period in self._series_months(horizon):
            active = self.dataset.active_subjects(period)
            new = frozenset(subject_id for subject_id in active if self.cohorts.first_period_of(subject_id) == period)
            rows.append(
                MAUGrowthAccountingRow(
                    month=period,
                    mau=len(active),
                    retained=len(active & previous_active),
                    new=len(new),
                    resurrected=len(active - previous_active - new),
                    churned=len(previous_active - active),
                )
            )
            previous_active = active
        return tuple(rows)

    def mrr_growth_accounting(self, horizon: Optional[TimestampLike] = None) -> Tuple[MRRGrowthAccountingRow, ...]:
        """
        Amount-weighted growth accounting (revenue, or commits as a proxy for it).

        rev(t) = new(t) + retained(t) + resurrected(t) + expansion(t)
        rev(t - 1 month) = retained(t) + churned(t) + contraction(t)
        """

        rows: List[MRRGrowthAccountingRow] = []
        previous_active: FrozenSet[str] = frozenset()
        for period in self._series_months(horizon):
            last_period = previous_month(period)
            active = self.dataset.active_subjects(period)
            rev: Amount = 0
            new: Amount = 0
            retained: Amount = 0
            resurrected: Amount = 0
            expansion: Amount = 0
            churned: Amount = 0
            contraction: Amount = 0

            for subject_id in sorted(active | previous_active):
                this_amt = self.dataset.amount(subject_id, period)
                last_amt = self.dataset.amount(subject_id, last_period)
                rev += this_amt
                if this_amt > 0 and self.cohorts.first_period_of(subject_id) == period:
                    new += this_amt
                elif this_amt > 0 and last_amt > 0:
                    retained += min(this_amt, last_amt)
                    if this_amt > last_amt:
                        expansion += this_amt - last_amt
                    elif this_amt < last_amt:
                        contraction += last_amt - this_amt
                elif this_amt > 0:
                    resurrected += this_amt
                elif last_amt > 0:
                    churned += last_amt

            rows.append(
                MRRGrowthAccountingRow(
                    month=period,
                    rev=rev,
                    retained=retained,
                    new=new,
                    resurrected=resurrected,
                    expansion=expansion,
                    churned=churned,
                    contraction=contraction,
                )
            )
            previous_active = active
        return tuple(rows)

    def project(
        self,
        chart_type: ChartType,
        date_range: Optional[DateRange] = None,
        cohort_order: Optional[Sequence[TimestampLike]] = None,
        horizon: Optional[TimestampLike] = None,
    ) -> ChartProjection:
        rows = self.cohort_table(horizon)
        if date_range is not None:
            rows = filter_series(rows, date_range, "first_month")
        return project_cohort_rows(rows, chart_type, cohort_order=cohort_order, config=self.config)
