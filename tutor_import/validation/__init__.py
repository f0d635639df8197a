"""Row validation, type coercion and reference resolution."""

from .coerce import Coerced, IssueSeverity, coerce_value
from .validator import ValidationContext, ValidationThresholds, validate_row, validate_rows

__all__ = [
    "Coerced",
    "IssueSeverity",
    "coerce_value",
    "ValidationContext",
    "ValidationThresholds",
    "validate_row",
    "validate_rows",
]
