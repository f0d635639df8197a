from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, BinaryIO

from ..config.loader import ImportConfig, MatchingConfig
from ..fields.catalog import map_headers, unmapped_headers
from ..fields.template import OPTIONAL_MARKER, REQUIRED_MARKER
from ..logging.error_log import ErrorLogBuffer
from ..matching.resolver import Ranker, SimilarityRanker
from ..models.outcome import BatchResult
from ..models.record import ParsedRecord
from ..models.report import ImportReport
from ..models.upload import UploadedRow
from ..reference.cache import ReferenceCache, ReferenceDataUnavailable, load_reference_cache
from ..reference.sources import database_loaders, file_loaders
from ..tabular.reader import UploadError, UploadErrorKind, parse_upload
from ..validation.validator import ValidationContext, ValidationThresholds, validate_rows
from ..db.store import TutorStore
from .persistence import PersistenceSettings, persist_records
from .progress import RecordProgress
from .report import build_report

"""Import pipeline entry points.

preview():    upload -> parsed rows -> validated records + preview report (no writes)
run_import(): preview result -> persisted tutor graphs -> final report

The operator looks at the preview (per-row errors and warnings) and only then
confirms; run_import never re-validates.
"""

__all__ = [
    "PreviewResult",
    "ImportRun",
    "load_cache",
    "preview",
    "run_import",
]

logger = logging.getLogger(__name__)

_MARKERS = {REQUIRED_MARKER, OPTIONAL_MARKER}


@dataclass(frozen=True)
class PreviewResult:
    source_name: str
    headers: list[str]
    header_map: dict[str, str]  # field name -> upload header
    unmapped_headers: list[str]
    records: list[ParsedRecord]
    report: ImportReport  # preview report: nothing attempted yet
    warnings: list[str] = field(default_factory=list)  # file-level (parser, headers)

    @property
    def valid_records(self) -> list[ParsedRecord]:
        return [r for r in self.records if r.is_valid]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_name,
            "headers": list(self.headers),
            "unmappedHeaders": list(self.unmapped_headers),
            "warnings": list(self.warnings),
            "records": [r.to_dict() for r in self.records],
            "report": self.report.to_dict(),
        }


@dataclass(frozen=True)
class ImportRun:
    preview: PreviewResult
    batch: BatchResult
    report: ImportReport


def load_cache(config: ImportConfig, cursor: Any = None,
               reference_dir: Path | str | None = None) -> ReferenceCache:
    """Load reference data from files (reference_dir / config) or the database.

    Raises:
        ReferenceDataUnavailable: no source configured, or every reference kind failed.
    """
    directory = reference_dir or config.reference.directory
    if directory:
        logger.info("reference data: files in %s", directory)
        return load_reference_cache(file_loaders(directory))
    if cursor is not None:
        logger.info("reference data: database")
        return load_reference_cache(database_loaders(cursor, config.reference))
    raise ReferenceDataUnavailable("no reference data source (set reference.directory or connect a database)")


def _is_marker_row(row: UploadedRow) -> bool:
    values = [v.strip().lower() for v in row.values.values() if v.strip()]
    return bool(values) and all(v in _MARKERS for v in values)


def preview(
    source: Path | str | bytes | BinaryIO,
    cache: ReferenceCache,
    *,
    extension: str | None = None,
    matching: MatchingConfig | None = None,
    ranker: Ranker | None = None,
    today: date | None = None,
    source_name: str | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> PreviewResult:
    """Parse and validate an upload without writing anything.

    Raises:
        UploadError: the file cannot be turned into rows at all, or holds
            nothing but template marker rows.
    """
    if source_name is None:
        source_name = Path(source).name if isinstance(source, (str, Path)) else "<upload>"
    parsed = parse_upload(source, extension)
    warnings = list(parsed.warnings)

    header_map = map_headers(parsed.headers)
    unmapped = unmapped_headers(parsed.headers)
    for header in unmapped:
        warnings.append(f"column '{header}' is not a known field and was ignored")

    rows: list[UploadedRow] = []
    for row in parsed.rows:
        if _is_marker_row(row):
            warnings.append(f"row {row.row_number}: template marker row skipped")
            continue
        rows.append(row)
    if not rows:
        raise UploadError(UploadErrorKind.NO_DATA_ROWS,
                          "file must contain at least one data row besides the template marker row")

    context = ValidationContext(
        cache=cache,
        ranker=ranker or SimilarityRanker(),
        thresholds=ValidationThresholds.from_config(matching or MatchingConfig()),
        today=today or date.today(),
    )
    records = validate_rows(rows, context)
    report = build_report(records)

    for w in warnings:
        logger.warning("%s: %s", source_name, w)
    if error_log is not None:
        for r in records:
            if not r.is_valid:
                error_log.add(source_name, r.row_number, "INVALID_ROW", "; ".join(r.errors))
    logger.info(
        "%s: %d rows parsed, %d valid, %d invalid",
        source_name, report.total_records, report.valid_count, report.invalid_count,
    )
    return PreviewResult(
        source_name=source_name,
        headers=list(parsed.headers),
        header_map=header_map,
        unmapped_headers=unmapped,
        records=records,
        warnings=warnings,
        report=report,
    )


def run_import(
    result: PreviewResult,
    store: TutorStore,
    settings: PersistenceSettings | None = None,
    *,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = None,
) -> ImportRun:
    """Persist the valid records of a confirmed preview and build the final report."""
    settings = settings or PersistenceSettings(source_name=result.source_name)
    valid = result.valid_records
    with RecordProgress(len(valid), enabled=show_progress) as progress:
        batch = persist_records(result.records, store, settings, progress=progress,
                                error_log=error_log)
    report = build_report(result.records, batch)
    logger.info(
        "%s: %d attempted, %d saved (%d partial), %d failed in %.2fs",
        result.source_name, report.attempted_count, report.success_count,
        report.partial_count, report.error_count, batch.elapsed_seconds,
    )
    return ImportRun(preview=result, batch=batch, report=report)
