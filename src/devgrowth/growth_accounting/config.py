# runtime parameters for the growth accounting pipeline

from __future__ import annotations

import os
from datetime import datetime
from typing import Any, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, field_validator

ENV_PREFIX = "DEVGROWTH_"


class PipelineConfig(BaseModel):
    """Configuration shared by the aggregator, projector and dataset intake."""

    model_config = ConfigDict(frozen=True)

    source_timezone: str = "UTC"
    """Zone used to interpret naive timestamps before bucketing into UTC months"""

    horizon: Optional[datetime] = None
    """Last month emitted by the aggregator; defaults to the latest month in the data"""

    commit_retention_fallback: float = 1.0
    """Denominator used by Commit Retention when a cohort's first month has no amount"""

    degenerate_value: float = 0.0
    """Value reported for cohorts with zero users"""

    skip_invalid_records: bool = True
    """Skip and report bad records during batch intake instead of raising"""

    log_skipped_records: bool = True
    """Emit one warning line per skipped record"""

    max_logged_skips: int = 20
    """Cap on per-record warning lines for a single intake"""

    @field_validator("commit_retention_fallback")
    @classmethod
    def positive_fallback(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("commit_retention_fallback must be positive")
        return value

    @field_validator("max_logged_skips")
    @classmethod
    def non_negative_cap(cls, value: int) -> int:
        return max(0, value)


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_pipeline_config(
    configurable: Optional[Mapping[str, Any]] = None,
    env_file: Optional[str] = None,
) -> PipelineConfig:
    """
    Build a ``PipelineConfig`` from a plain mapping plus ``DEVGROWTH_*`` overrides.

    Environment variables win over the mapping, e.g. ``DEVGROWTH_SOURCE_TIMEZONE``.
    Blank variables count as unset.
    When ``env_file`` is given its entries are read with python-dotenv and sit
    between the two; the process environment is not modified.
    """

    configurable = dict(configurable or {})
    environ: dict[str, Optional[str]] = dict(dotenv_values(env_file)) if env_file else {}
    environ.update((name, raw) for name, raw in os.environ.items() if raw.strip())

    values: dict[str, Any] = {}
    for field_name, field_info in PipelineConfig.model_fields.items():
        raw = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw is None or not raw.strip():
            if configurable.get(field_name) is not None:
                values[field_name] = configurable[field_name]
            continue
        if field_info.annotation is bool:
            values[field_name] = _env_bool(raw)
        else:
            values[field_name] = raw.strip()
    return PipelineConfig(**values)
