"""PostgreSQL access: batched inserts and tutor graph stores."""

from .insert import BatchInsertError, StoreError, StoreUnavailableError, batch_insert
from .store import DryRunStore, PostgresTutorStore, TutorStore

__all__ = [
    "batch_insert",
    "BatchInsertError",
    "StoreError",
    "StoreUnavailableError",
    "TutorStore",
    "PostgresTutorStore",
    "DryRunStore",
]
