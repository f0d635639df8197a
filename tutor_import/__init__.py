"""Bulk tutor import: spreadsheet parsing, fuzzy reference resolution and
best-effort persistence into PostgreSQL."""

__version__ = "0.1.0"
