from __future__ import annotations

"""Batch-level failure types.

Anything derived from ImportFatalError stops the pipeline before (or while)
rows are processed. Row-level problems never raise; they are carried on
ParsedRecord / RecordOutcome instead.
"""

__all__ = [
    "ImportFatalError",
]


class ImportFatalError(Exception):
    """Base class for conditions that abort the whole import."""
