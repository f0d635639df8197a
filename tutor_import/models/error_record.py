from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Row-level validation errors and persistence failures are written here so an
operator can audit a batch after the fact. row=-1 marks batch-level failures
where no single row is responsible (unreadable upload, store unreachable).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded file name
        row: 1-based data row number, or -1 for batch-level errors
        error_type: classification in UPPER_SNAKE_CASE (INVALID_ROW, IDENTITY_CREATE_ERROR, ...)
        message: human readable description
    """
    timestamp: str
    file: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # fixed key set; nothing beyond the dataclass fields
        return json.dumps(asdict(self), ensure_ascii=False)
