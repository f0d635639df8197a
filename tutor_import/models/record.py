from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""ParsedRecord: the validated, type-coerced, reference-resolved form of one row.

is_valid is derived from errors rather than stored, so a record carrying errors
can never report itself as valid.
"""

__all__ = [
    "ParsedRecord",
]


@dataclass(frozen=True)
class ParsedRecord:
    row_number: int  # 1-based position in the source file
    original_fields: dict[str, str]  # the raw UploadedRow values
    mapped_fields: dict[str, Any]  # canonical field name -> coerced value (+ resolved ids)
    errors: tuple[str, ...] = ()  # blocking problems, in detection order
    warnings: tuple[str, ...] = ()  # non-blocking concerns, in detection order
    resolved_names: dict[str, str] = field(default_factory=dict)  # field -> matched display name

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> dict[str, Any]:
        """Preview shape consumed by the operator UI."""
        return {
            "rowNumber": self.row_number,
            "originalFields": dict(self.original_fields),
            "mappedFields": dict(self.mapped_fields),
            "resolvedNames": dict(self.resolved_names),
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }
