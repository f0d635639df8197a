"""Domain models for the tutor bulk import pipeline."""

from .error_record import ErrorRecord
from .outcome import BatchResult, BatchStatus, OutcomeKind, RecordOutcome
from .record import ParsedRecord
from .reference import FieldMatch, MatchType, ReferenceEntity, ReferenceKind
from .report import ImportReport, ReportEntry
from .upload import ParseResult, UploadedRow

__all__ = [
    # Upload side
    "UploadedRow",
    "ParseResult",
    # Reference data / matching
    "ReferenceKind",
    "ReferenceEntity",
    "MatchType",
    "FieldMatch",
    # Validation
    "ParsedRecord",
    # Persistence
    "OutcomeKind",
    "BatchStatus",
    "RecordOutcome",
    "BatchResult",
    # Reporting
    "ImportReport",
    "ReportEntry",
    "ErrorRecord",
]
