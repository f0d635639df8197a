"""Reference data (provinces, cities, banks, subjects) for one import session."""

from .cache import (
    ReferenceCache,
    ReferenceCollection,
    ReferenceDataUnavailable,
    load_reference_cache,
)
from .sources import database_loaders, file_loaders

__all__ = [
    "ReferenceCache",
    "ReferenceCollection",
    "ReferenceDataUnavailable",
    "load_reference_cache",
    "database_loaders",
    "file_loaders",
]
