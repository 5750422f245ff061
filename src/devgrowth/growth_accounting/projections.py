"""
Chart views over the cohort table.

Each chart type turns cohort rows into one line per cohort, indexed by months
since the cohort's first month:

Logo retention   = users / cohort_num_users * 100
Cohort LTV       = cum_amt_per_user
Commit retention = inc_amt / inc_amt(month 0) * 100

Zero-size cohorts report ``degenerate_value`` and are listed in
``ChartProjection.degenerate_cohorts``. Commit retention falls back to
``commit_retention_fallback`` as denominator when month 0 has no amount and
flags those points as approximated.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .config import PipelineConfig
from .models import ChartProjection, ChartType, CohortSeries, DegenerateCohort, ProjectedPoint
from .periods import TimestampLike, month_label, normalize_period

logger = logging.getLogger(__name__)

_CHART_META: Dict[ChartType, Tuple[str, str, Optional[str]]] = {
    ChartType.LOGO_RETENTION: ("Developer Retention", "Developer Retention", "%"),
    ChartType.COHORT_LTV: ("Cohort LTV", "Cumulative Commits per User", None),
    ChartType.COMMIT_RETENTION: ("Commit Retention", "Commit Retention", "%"),
}


def _get(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row[name]
    return getattr(row, name)


def group_by_cohort(
    rows: Iterable[Any],
    cohort_order: Optional[Sequence[TimestampLike]] = None,
) -> List[Tuple[datetime, List[Any]]]:
    """
    Group rows by ``first_month`` and sort each group by ``months_since_first``.

    Cohorts listed in ``cohort_order`` come first, in that order; the rest
    follow in ascending month order.
    """

    groups: Dict[datetime, List[Any]] = {}
    for row in rows:
        groups.setdefault(normalize_period(_get(row, "first_month")), []).append(row)
    for members in groups.values():
        members.sort(key=lambda row: int(_get(row, "months_since_first")))

    ordered: List[datetime] = []
    for key in cohort_order or ():
        cohort = normalize_period(key)
        if cohort in groups and cohort not in ordered:
            ordered.append(cohort)
    ordered.extend(sorted(cohort for cohort in groups if cohort not in ordered))
    return [(cohort, groups[cohort]) for cohort in ordered]


def initial_inc_amt_by_cohort(groups: Iterable[Tuple[datetime, Sequence[Any]]]) -> Dict[datetime, float]:
    initial: Dict[datetime, float] = {}
    for cohort, members in groups:
        for row in members:
            if int(_get(row, "months_since_first")) == 0:
                initial[cohort] = _get(row, "inc_amt")
                break
    return initial


def project_cohort_rows(
    rows: Iterable[Any],
    chart_type: Union[ChartType, str],
    cohort_order: Optional[Sequence[TimestampLike]] = None,
    config: Optional[PipelineConfig] = None,
) -> ChartProjection:
    cfg = config or PipelineConfig()
    chart_type = ChartType(chart_type)
    title, y_axis_label, unit = _CHART_META[chart_type]

    groups = group_by_cohort(rows, cohort_order)
    initial_amounts = initial_inc_amt_by_cohort(groups)
    labels = sorted({int(_get(row, "months_since_first")) for _, members in groups for row in members})

    series: List[CohortSeries] = []
    degenerate: List[DegenerateCohort] = []
    for cohort, members in groups:
        points = tuple(_project_point(row, chart_type, initial_amounts.get(cohort), cfg) for row in members)
        if any(point.degenerate for point in points):
            degenerate.append(DegenerateCohort(first_month=cohort))
            logger.info("Cohort %s has no users; reporting %s for %s", month_label(cohort), cfg.degenerate_value, title)
        series.append(CohortSeries(cohort=cohort, label=month_label(cohort), points=points))

    return ChartProjection(
        chart_type=chart_type,
        title=title,
        y_axis_label=y_axis_label,
        unit=unit,
        labels=tuple(labels),
        series=tuple(series),
        degenerate_cohorts=tuple(degenerate),
    )


def _project_point(row: Any, chart_type: ChartType, initial_amount: Optional[float], cfg: PipelineConfig) -> ProjectedPoint:
    cohort_num_users = int(_get(row, "cohort_num_users"))
    months_since_first = int(_get(row, "months_since_first"))
    active_month = normalize_period(_get(row, "active_month"))
    degenerate = False
    approximated = False

    if chart_type is ChartType.COMMIT_RETENTION:
        denominator = initial_amount
        if not denominator:
            denominator = cfg.commit_retention_fallback
            approximated = True
        value = float(_get(row, "inc_amt")) / denominator * 100
    elif cohort_num_users == 0:
        value = cfg.degenerate_value
        degenerate = True
    elif chart_type is ChartType.LOGO_RETENTION:
        value = int(_get(row, "users")) / cohort_num_users * 100
    else:
        value = float(_get(row, "cum_amt_per_user"))

    return ProjectedPoint(
        months_since_first=months_since_first,
        active_month=active_month,
        value=value,
        degenerate=degenerate,
        approximated=approximated,
    )
