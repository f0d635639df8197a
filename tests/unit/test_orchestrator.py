from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tutor_import.config.loader import MatchingConfig, config_from_dict
from tutor_import.db.store import DryRunStore
from tutor_import.logging.error_log import ErrorLogBuffer
from tutor_import.models.reference import ReferenceKind
from tutor_import.reference.cache import ReferenceDataUnavailable
from tutor_import.services.persistence import PersistenceSettings
from tutor_import.services.pipeline import load_cache, preview, run_import
from tutor_import.tabular.reader import UploadError, UploadErrorKind

from conftest import FIXED_TODAY

CSV = (
    "Email Aktif,Nama Lengkap,No. HP Utama (+62),Warna Favorit\n"
    "required,required,required,optional\n"
    "a@example.com,Ani,081211112222,biru\n"
    ",Budi,081233334444,\n"
    "c@example.com,Citra,081255556666,\n"
).encode("utf-8")


def _preview(cache, **kwargs):
    return preview(CSV, cache, extension="csv", today=FIXED_TODAY, **kwargs)


def test_preview_skips_marker_row_and_flags_unknown_columns(reference_cache):
    result = _preview(reference_cache, source_name="tutors.csv")
    assert result.source_name == "tutors.csv"
    assert [r.row_number for r in result.records] == [2, 3, 4]
    assert result.unmapped_headers == ["Warna Favorit"]
    assert result.header_map["noHp1"] == "No. HP Utama (+62)"
    assert result.warnings == [
        "column 'Warna Favorit' is not a known field and was ignored",
        "row 1: template marker row skipped",
    ]
    assert [r.row_number for r in result.valid_records] == [2, 4]
    report = result.report
    assert (report.status, report.total_records, report.valid_count, report.invalid_count) == ("preview", 3, 2, 1)


def test_preview_rejects_marker_only_upload(reference_cache):
    marker_only = b"Email Aktif,Nama Lengkap\nrequired,required\n"
    with pytest.raises(UploadError) as exc_info:
        preview(marker_only, reference_cache, extension="csv", today=FIXED_TODAY)
    assert exc_info.value.kind is UploadErrorKind.NO_DATA_ROWS
    assert "besides the template marker row" in str(exc_info.value)


def test_preview_writes_invalid_rows_to_error_log(reference_cache, tmp_path: Path):
    log = ErrorLogBuffer(tmp_path)
    _preview(reference_cache, error_log=log)
    assert [(r.file, r.row, r.error_type, r.message) for r in log.records] == [
        ("<upload>", 3, "INVALID_ROW", "Email Aktif is required"),
    ]


def test_preview_uses_matching_thresholds(reference_cache):
    data = "Email Aktif,Nama Lengkap,No. HP Utama (+62),Kota/Kabupaten Domisili\na@b.co,Ani,081211112222,Sorabaja\n"
    default = preview(data.encode(), reference_cache, extension="csv", today=FIXED_TODAY)
    assert default.records[0].mapped_fields["kotaKabupatenDomisiliId"] == "c-surabaya"
    strict = preview(data.encode(), reference_cache, extension="csv", today=FIXED_TODAY,
                     matching=MatchingConfig(reject_floor=80))
    assert "kotaKabupatenDomisiliId" not in strict.records[0].mapped_fields


def test_preview_to_dict(reference_cache):
    data = _preview(reference_cache).to_dict()
    assert set(data) == {"source", "headers", "unmappedHeaders", "warnings", "records", "report"}
    assert data["records"][1]["errors"] == ["Email Aktif is required"]


def test_run_import_persists_valid_records(reference_cache, tmp_path: Path):
    store = DryRunStore()
    log = ErrorLogBuffer(tmp_path)
    result = _preview(reference_cache, source_name="tutors.csv")
    run = run_import(result, store, PersistenceSettings(source_name="tutors.csv"), error_log=log,
                     show_progress=False)
    assert run.preview is result
    assert run.report.status == "completed"
    assert (run.report.attempted_count, run.report.success_count, run.report.error_count) == (2, 2, 0)
    assert run.report.invalid_count == 1
    assert [r["email"] for r in store.rows("identity")] == ["a@example.com", "c@example.com"]
    assert len(log) == 0


def test_load_cache_prefers_files(reference_dir: Path):
    cursor = MagicMock()
    cache = load_cache(config_from_dict({}), cursor, reference_dir)
    assert len(cache.provinces) == 4
    cursor.execute.assert_not_called()


def test_load_cache_from_database():
    cursor = MagicMock()
    cursor.fetchall.return_value = [("1", "Nama", None, None)]
    cache = load_cache(config_from_dict({}), cursor)
    assert cache.unavailable_kinds == []
    assert cache.collection(ReferenceKind.SUBJECT).entities[0].name == "Nama"


def test_load_cache_without_source():
    with pytest.raises(ReferenceDataUnavailable):
        load_cache(config_from_dict({}))
