"""
Cohort assignment.

A subject's cohort is the month of its earliest record. The assignment is
computed in a single pass over the complete record set of one analysis scope,
so a cohort never moves once the input is fixed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Set, Tuple

from .errors import MalformedRecord
from .models import ActivityRecord


@dataclass(frozen=True)
class CohortAssignment:
    first_periods: Mapping[str, datetime]
    members: Mapping[datetime, FrozenSet[str]]

    def cohort_keys(self) -> Tuple[datetime, ...]:
        return tuple(sorted(self.members))

    def cohort_num_users(self, first_period: datetime) -> int:
        return len(self.members.get(first_period, frozenset()))

    def first_period_of(self, subject_id: str) -> datetime:
        return self.first_periods[subject_id]


def assign_cohorts(records: Iterable[ActivityRecord]) -> CohortAssignment:
    """
    Group subjects by the month of their first record.

    Zero-amount records count: a subject first seen as explicitly inactive
    still joins the cohort of that month. Raises ``MalformedRecord`` for a
    record without a subject id.
    """

    first_periods: Dict[str, datetime] = {}
    for record in records:
        if not getattr(record, "subject_id", None):
            raise MalformedRecord("Record is missing subject_id", record=record)
        current = first_periods.get(record.subject_id)
        if current is None or record.period < current:
            first_periods[record.subject_id] = record.period

    grouped: Dict[datetime, Set[str]] = {}
    for subject_id, first_period in first_periods.items():
        grouped.setdefault(first_period, set()).add(subject_id)

    return CohortAssignment(
        first_periods=MappingProxyType(first_periods),
        members=MappingProxyType({period: frozenset(subjects) for period, subjects in grouped.items()}),
    )
