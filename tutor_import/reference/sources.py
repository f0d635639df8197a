from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd
import psycopg2
import yaml

from ..config.loader import ReferenceSourceConfig, ReferenceTableConfig
from ..models.reference import ReferenceKind
from .cache import Loader

"""Reference data sources: PostgreSQL tables or flat files.

Both produce one zero-argument loader per ReferenceKind for load_reference_cache().
Loaders are lazy; nothing is read until the cache is built.
"""

__all__ = [
    "database_loaders",
    "file_loaders",
]

logger = logging.getLogger(__name__)

_LOGICAL_COLUMNS = ("id", "name", "local_name", "parent_id", "alternate_name")
_FILE_SUFFIXES = (".csv", ".yml", ".yaml")


def _select_sql(cfg: ReferenceTableConfig) -> tuple[str, list[str]]:
    logical = [c for c in _LOGICAL_COLUMNS if c in cfg.columns]
    select = ", ".join(f'"{cfg.columns[c]}" AS {c}' for c in logical)
    sql = f"SELECT {select} FROM {cfg.table}"
    if cfg.where:
        sql += f" WHERE {cfg.where}"
    return sql, logical


def _table_loader(cursor: Any, kind: ReferenceKind, cfg: ReferenceTableConfig) -> Loader:
    def load() -> list[dict[str, Any]]:
        sql, logical = _select_sql(cfg)
        logger.debug("reference: %s <- %s", kind.value, sql)
        try:
            cursor.execute(sql)
            rows = cursor.fetchall()
        except psycopg2.Error:
            # leave the session usable for the remaining loaders
            try:
                cursor.execute("ROLLBACK")
            except psycopg2.Error as rb:
                logger.debug("reference: rollback after %s failure failed: %s", kind.value, rb)
            raise
        return [dict(zip(logical, r)) for r in rows]
    return load


def database_loaders(cursor: Any, reference: ReferenceSourceConfig) -> dict[ReferenceKind, Loader]:
    return {
        kind: _table_loader(cursor, kind, reference.tables[kind])
        for kind in ReferenceKind
        if kind in reference.tables
    }


def _read_reference_file(path: Path) -> list[dict[str, Any]]:
    if path.suffix == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        df.columns = [str(c).strip() for c in df.columns]
        return df.to_dict(orient="records")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    if isinstance(data, dict):
        # allow {provinces: [...]} as well as a bare list
        data = next(iter(data.values()), [])
    if not isinstance(data, list):
        raise ValueError(f"{path.name}: expected a list of records")
    return [row for row in data if isinstance(row, dict)]


def _file_loader(directory: Path, kind: ReferenceKind) -> Loader:
    def load() -> list[dict[str, Any]]:
        for suffix in _FILE_SUFFIXES:
            path = directory / f"{kind.value}{suffix}"
            if path.exists():
                logger.debug("reference: %s <- %s", kind.value, path)
                return _read_reference_file(path)
        raise FileNotFoundError(f"no {kind.value}.csv/.yml in {directory}")
    return load


def file_loaders(directory: Path | str) -> dict[ReferenceKind, Loader]:
    """Loaders reading ``provinces|cities|banks|subjects`` + ``.csv|.yml|.yaml``."""
    base = Path(directory)
    return {kind: _file_loader(base, kind) for kind in ReferenceKind}
