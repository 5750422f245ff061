from __future__ import annotations

from typing import Any, Optional


class GrowthAccountingError(ValueError):
    """Base class for input problems raised by the growth accounting pipeline."""

    kind = "growth_accounting_error"

    def __init__(self, message: str, record: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.record = record


class InvalidTimestamp(GrowthAccountingError):
    """The value cannot be turned into a calendar month in UTC."""

    kind = "invalid_timestamp"


class MalformedRecord(GrowthAccountingError):
    """A record is missing a required field or carries an unusable value."""

    kind = "malformed_record"
