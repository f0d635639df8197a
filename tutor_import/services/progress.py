from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.outcome import OutcomeKind, RecordOutcome

"""Progress display with tqdm (TTY only).

One bar over the records the orchestrator attempts. In non-TTY environments
(CI, piped output) the bar is disabled so the labeled log lines stay clean.
"""

__all__ = [
    "RecordProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class RecordProgress:
    """Progress bar over persisted records, postfix ``success=… partial=… failed=…``."""

    def __init__(self, total_records: int, *, description: str = "Importing tutors",
                 enabled: bool | None = None) -> None:
        self.total_records = total_records
        self.description = description
        self.success = 0
        self.partial = 0
        self.failed = 0

        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_records,
                desc=description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def update(self, outcome: RecordOutcome) -> None:
        if outcome.kind is OutcomeKind.SUCCESS:
            self.success += 1
        elif outcome.kind is OutcomeKind.PARTIAL:
            self.partial += 1
        else:
            self.failed += 1
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(success=self.success, partial=self.partial, failed=self.failed)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RecordProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
