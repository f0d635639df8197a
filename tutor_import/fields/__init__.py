"""Declarative field catalog, header alias lookup and import template."""

from .catalog import (
    FIELD_CATALOG,
    FIELDS_BY_NAME,
    REQUIRED_FIELDS,
    FieldSpec,
    FieldType,
    lookup_field,
    map_headers,
)
from .template import build_template_rows, write_template

__all__ = [
    "FIELD_CATALOG",
    "FIELDS_BY_NAME",
    "REQUIRED_FIELDS",
    "FieldSpec",
    "FieldType",
    "lookup_field",
    "map_headers",
    "build_template_rows",
    "write_template",
]
