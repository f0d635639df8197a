from __future__ import annotations

from pathlib import Path

import pandas as pd

from .catalog import FIELD_CATALOG, FieldSpec

"""Downloadable import template generated from FIELD_CATALOG.

Three rows: column headers (field labels), a required/optional marker row and
one example row.
"""

__all__ = [
    "REQUIRED_MARKER",
    "OPTIONAL_MARKER",
    "build_template_rows",
    "write_template",
]

REQUIRED_MARKER = "required"
OPTIONAL_MARKER = "optional"


def build_template_rows(catalog: tuple[FieldSpec, ...] = FIELD_CATALOG) -> list[list[str]]:
    labels = [f.label for f in catalog]
    markers = [REQUIRED_MARKER if f.required else OPTIONAL_MARKER for f in catalog]
    examples = [f.example for f in catalog]
    return [labels, markers, examples]


def write_template(path: Path | str, catalog: tuple[FieldSpec, ...] = FIELD_CATALOG) -> Path:
    """Write the template as UTF-8 CSV (BOM included so Excel opens it correctly)."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    header, *body = build_template_rows(catalog)
    pd.DataFrame(body, columns=header).to_csv(out, index=False, encoding="utf-8-sig")
    return out
