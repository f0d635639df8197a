from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import psycopg2
from dotenv import load_dotenv

from ..config.loader import ConfigError, ImportConfig, config_from_dict, load_config
from ..db.store import DryRunStore, PostgresTutorStore, StoreUnavailableError
from ..errors import ImportFatalError
from ..fields.catalog import map_headers, unmapped_headers
from ..fields.template import write_template
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.report import ImportReport
from ..services.persistence import PersistenceSettings
from ..services.pipeline import PreviewResult, load_cache, preview, run_import
from ..services.summary import render_summary_line
from ..tabular.reader import parse_upload

"""CLI entrypoint.

    tutor-import import FILE [--config PATH] [--commit] [--dry-run] [--preview-json PATH]
                             [--reference-dir DIR] [--inspect] [--debug]
    tutor-import template [-o PATH]

Without --commit the import only previews (parse + validate, per-row errors and
warnings logged). --commit needs a database unless --dry-run is given.
Exit codes: 0 everything valid and saved, 2 invalid / failed rows or aborted
batch, 1 fatal (config, unreadable upload, reference data or
database unavailable).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/import.yml")
DEFAULT_TEMPLATE_PATH = Path("tutor_import_template.csv")

logger = logging.getLogger("tutor_import.cli")


def _dsn(cfg: ImportConfig) -> str:
    """Connection string; DATABASE_URL / PGDSN / PG* (environment, .env) win over the YAML section."""
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_cursor(cfg: ImportConfig) -> Iterator[Any]:
    """psycopg2 cursor, or None when connecting is disabled or fails.

    Transactions are driven explicitly by the store, so autocommit stays off.
    """
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1")
        yield None
        return
    try:
        conn = psycopg2.connect(_dsn(cfg))
    except psycopg2.Error as e:
        logger.info("DB connection failed -> no database (preview and --dry-run only): %s", e)
        yield None
        return
    conn.autocommit = False
    cur = conn.cursor()
    try:
        yield cur
    finally:
        try:
            cur.close()
        finally:
            conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="tutor-import", description="Bulk tutor import (CSV / XLSX / XLS -> PostgreSQL)")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Preview and (with --commit) import a tutor spreadsheet")
    imp.add_argument("file", type=Path, help="CSV, XLSX or XLS upload")
    imp.add_argument("--config", type=Path, default=None, help=f"YAML config (default {DEFAULT_CONFIG_PATH})")
    imp.add_argument("--commit", action="store_true", help="Persist valid rows after the preview")
    imp.add_argument("--dry-run", action="store_true", help="Persist into an in-memory store instead of the database")
    imp.add_argument("--preview-json", type=Path, default=None, help="Write the preview (per-row results) as JSON")
    imp.add_argument("--reference-dir", type=Path, default=None,
                     help="Read provinces/cities/banks/subjects from files in this directory")
    imp.add_argument("--inspect", action="store_true", help="Print headers, field mapping and first rows then exit")
    imp.add_argument("--debug", action="store_true", help="Enable debug logging")

    tpl = sub.add_parser("template", help="Write the CSV import template")
    tpl.add_argument("-o", "--output", type=Path, default=DEFAULT_TEMPLATE_PATH)
    tpl.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _load_config(path: Path | None) -> ImportConfig:
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.info("config: %s not found, using defaults", DEFAULT_CONFIG_PATH)
            return config_from_dict({})
        path = DEFAULT_CONFIG_PATH
    return load_config(path)


def _today(cfg: ImportConfig) -> date:
    try:
        return datetime.now(ZoneInfo(cfg.timezone)).date()
    except ZoneInfoNotFoundError as e:
        raise ConfigError(f"unknown timezone: {cfg.timezone}") from e


def _inspect(file: Path) -> int:
    parsed = parse_upload(file)
    print(f"FILE: {file.name} rows={len(parsed.rows)}")
    mapping = map_headers(parsed.headers)
    by_header = {h: name for name, h in mapping.items()}
    for header in parsed.headers:
        print(f"  {header!r} -> {by_header.get(header, '(ignored)')}")
    unmapped = unmapped_headers(parsed.headers)
    if unmapped:
        print(f"  unmapped={unmapped}")
    for row in parsed.rows[:3]:
        print(f"  row {row.row_number}: {json.dumps(row.values, ensure_ascii=False)}")
    for w in parsed.warnings:
        print(f"  warning: {w}")
    return EXIT_SUCCESS_ALL


def _log_preview(result: PreviewResult) -> None:
    for record in result.records:
        for message in record.errors:
            logger.error("row=%d %s", record.row_number, message)
        for message in record.warnings:
            logger.warning("row=%d %s", record.row_number, message)


def _write_preview_json(result: PreviewResult, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_dict(), ensure_ascii=False, indent=2, default=str), encoding="utf-8")
    logger.info("preview written: %s", path)


def _exit_code(report: ImportReport) -> int:
    if report.invalid_count or report.error_count or report.not_attempted_count:
        return EXIT_PARTIAL_FAILURE
    if report.status not in ("preview", "completed"):
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _run(args: argparse.Namespace, cfg: ImportConfig, cursor: Any, error_log: ErrorLogBuffer) -> ImportReport:
    cache = load_cache(cfg, cursor, args.reference_dir)
    result = preview(
        args.file,
        cache,
        matching=cfg.matching,
        today=_today(cfg),
        error_log=error_log,
    )
    _log_preview(result)
    if args.preview_json is not None:
        _write_preview_json(result, args.preview_json)
    if not args.commit:
        logger.info("preview only; re-run with --commit to save %d valid rows", len(result.valid_records))
        return result.report

    if args.dry_run:
        store: Any = DryRunStore(roles={cfg.persistence.tutor_role_name: "dry-role"})
        mode = "dry-run"
    elif cursor is None:
        raise StoreUnavailableError("no database connection; nothing was saved (use --dry-run to rehearse)")
    else:
        store = PostgresTutorStore(cursor, cfg.tables, statement_timeout_ms=cfg.persistence.statement_timeout_ms)
        store.prepare_session()
        mode = "live"
    logger.info("mode=%s persisting %d rows", mode, len(result.valid_records))
    settings = PersistenceSettings.from_config(cfg.persistence, source_name=result.source_name)
    return run_import(result, store, settings, error_log=error_log).report


def _import(args: argparse.Namespace) -> int:
    _load_env_file(Path(".env"), override=True)
    cfg = _load_config(args.config)

    if args.inspect:
        return _inspect(args.file)

    error_log = ErrorLogBuffer(cfg.error_log_dir)
    try:
        with _db_cursor(cfg) as cursor:
            report = _run(args, cfg, cursor, error_log)
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info("error log written: %s", path)

    log_summary(render_summary_line(report)[len("SUMMARY "):])
    return _exit_code(report)


def main(argv: list[str] | None = None) -> int:
    # None only: an empty list must not fall back to sys.argv (pytest flags would leak in)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    try:
        if args.command == "template":
            out = write_template(args.output)
            logger.info("template written: %s", out)
            return EXIT_SUCCESS_ALL
        return _import(args)
    except ImportFatalError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return EXIT_FATAL
    except OSError as e:
        logger.error("%s", e)
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
