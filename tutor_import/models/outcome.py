from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""Persistence outcomes.

OutcomeKind tells callers whether a row was skipped or (partially) written
without them having to inspect exception types or message text.
"""

__all__ = [
    "OutcomeKind",
    "BatchStatus",
    "RecordOutcome",
    "BatchResult",
]


class OutcomeKind(Enum):
    """Per-row persistence result.

    - SUCCESS: identity and every attempted dependent record were written
    - PARTIAL: identity written, one or more dependent records failed (kept, not rolled back)
    - ERROR: nothing usable was written for the row
    """
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class BatchStatus(Enum):
    COMPLETED = "completed"
    ABORTED_TIMEOUT = "aborted_timeout"  # wall-clock budget exhausted, rest not attempted
    ABORTED_FATAL = "aborted_fatal"  # backing store unreachable, rest not attempted


@dataclass(frozen=True)
class RecordOutcome:
    row_number: int
    kind: OutcomeKind
    user_id: str | None = None
    user_code: str | None = None
    message: str | None = None  # error text for ERROR, summary of failed parts for PARTIAL
    warnings: tuple[str, ...] = ()
    failed_parts: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.kind is not OutcomeKind.ERROR


@dataclass(frozen=True)
class BatchResult:
    """Everything the orchestrator produced for one batch."""
    outcomes: list[RecordOutcome]
    status: BatchStatus
    attempted: int  # valid records the orchestrator tried (incl. the one that hit a fatal error)
    not_attempted_rows: list[int] = field(default_factory=list)
    start_time: datetime | None = None
    end_time: datetime | None = None
    fatal_message: str | None = None

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()
