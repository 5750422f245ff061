from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Collection, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import PipelineConfig
from .errors import GrowthAccountingError, MalformedRecord
from .models import ActivityRecord, Amount, SkippedRecord

logger = logging.getLogger(__name__)


def _require(payload: Any, key: str) -> Any:
    if not isinstance(payload, Mapping):
        raise MalformedRecord(f"Expected a mapping, got {type(payload).__name__}", record=payload)
    if key not in payload:
        raise MalformedRecord(f"Record is missing {key}", record=payload)
    return payload[key]


def _activity_from_payload(payload: Any, config: PipelineConfig) -> ActivityRecord:
    subject_id = _require(payload, "subject_id")
    period = _require(payload, "period")
    amount = _require(payload, "amount")
    return ActivityRecord.create(subject_id, period, amount, source_timezone=config.source_timezone)


def _activity_from_commit(commit: Any, config: PipelineConfig) -> ActivityRecord:
    author = _require(commit, "author")
    committed_at = _require(commit, "date")
    return ActivityRecord.create(author, committed_at, 1, source_timezone=config.source_timezone)


@dataclass
class ActivityDataset:
    """
    Complete, immutable snapshot of the activity for one analysis scope.

    Records are rolled up into per-subject monthly totals on construction.
    A subject is active in a month when its total for that month is positive.
    """

    records: Sequence[ActivityRecord]
    skipped: Sequence[SkippedRecord] = ()

    def __post_init__(self) -> None:
        # Amount breaks ties so same-month float totals do not depend on input order.
        self.records = tuple(
            sorted(self.records, key=lambda record: (record.period, record.subject_id, record.amount))
        )
        self.skipped = tuple(self.skipped)

        monthly: Dict[str, Dict[datetime, Amount]] = defaultdict(lambda: defaultdict(int))
        for record in self.records:
            monthly[record.subject_id][record.period] += record.amount
        self._monthly: Dict[str, Mapping[datetime, Amount]] = {
            subject_id: MappingProxyType(dict(periods)) for subject_id, periods in monthly.items()
        }

    @classmethod
    def from_payloads(
        cls,
        payloads: Iterable[Any],
        config: Optional[PipelineConfig] = None,
    ) -> "ActivityDataset":
        """
        Build a dataset from ActivityRecord-shaped dicts (``subject_id``, ``period``, ``amount``).

        Bad records are skipped and reported unless ``skip_invalid_records`` is off.
        """

        cfg = config or PipelineConfig()
        return cls._collect(payloads, cfg, lambda payload: _activity_from_payload(payload, cfg))

    @classmethod
    def from_commits(
        cls,
        commits: Iterable[Any],
        repository_ids: Optional[Collection[int]] = None,
        config: Optional[PipelineConfig] = None,
    ) -> "ActivityDataset":
        """
        Build a dataset from commit rows (``author``, ``date``, ``repository_id``).

        Each commit counts as one unit of activity for its author. When
        ``repository_ids`` is given, commits from other repositories are ignored,
        which turns a flat commit feed into a collection-scoped dataset. Commits
        without a ``repository_id`` are then skipped and reported.
        """

        cfg = config or PipelineConfig()
        scope = None if repository_ids is None else frozenset(repository_ids)

        def in_scope(commit: Any) -> bool:
            # Commits without a repository are kept so intake reports them.
            if scope is None or not isinstance(commit, Mapping) or commit.get("repository_id") is None:
                return True
            return commit["repository_id"] in scope

        def convert(commit: Any) -> ActivityRecord:
            if scope is not None and _require(commit, "repository_id") is None:
                raise MalformedRecord("Commit has no repository_id", record=commit)
            return _activity_from_commit(commit, cfg)

        return cls._collect((commit for commit in commits if in_scope(commit)), cfg, convert)

    @classmethod
    def _collect(
        cls,
        items: Iterable[Any],
        config: PipelineConfig,
        convert: Callable[[Any], ActivityRecord],
    ) -> "ActivityDataset":
        records: List[ActivityRecord] = []
        skipped: List[SkippedRecord] = []
        total = 0
        for index, item in enumerate(items):
            total += 1
            try:
                records.append(convert(item))
            except GrowthAccountingError as exc:
                if not config.skip_invalid_records:
                    raise
                skipped.append(SkippedRecord(index=index, kind=exc.kind, message=exc.message, record=item))
                if config.log_skipped_records and len(skipped) <= config.max_logged_skips:
                    logger.warning("Skipping activity record #%d [%s]: %s", index, exc.kind, exc.message)

        if skipped:
            logger.info("Skipped %d of %d activity records", len(skipped), total)
        return cls(records=records, skipped=skipped)

    @property
    def earliest_period(self) -> Optional[datetime]:
        return self.records[0].period if self.records else None

    @property
    def latest_period(self) -> Optional[datetime]:
        return max(record.period for record in self.records) if self.records else None

    def subjects(self) -> Tuple[str, ...]:
        return tuple(sorted(self._monthly))

    def monthly_amounts(self, subject_id: str) -> Mapping[datetime, Amount]:
        return self._monthly.get(subject_id, MappingProxyType({}))

    def amount(self, subject_id: str, period: datetime) -> Amount:
        return self.monthly_amounts(subject_id).get(period, 0)

    def is_active(self, subject_id: str, period: datetime) -> bool:
        return self.amount(subject_id, period) > 0

    def active_subjects(self, period: datetime, among: Optional[Iterable[str]] = None) -> FrozenSet[str]:
        candidates = self._monthly if among is None else among
        return frozenset(subject_id for subject_id in candidates if self.is_active(subject_id, period))
