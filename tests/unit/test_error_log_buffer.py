from __future__ import annotations
import json
import re
from pathlib import Path
from tutor_import.logging.error_log import ErrorRecord, ErrorLogBuffer

FIXED_KEYS = {"timestamp", "file", "row", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        file="tutors.xlsx",
        row=10,
        error_type="DUPLICATE_EMAIL",
        message="email already registered",
    )
    data = json.loads(rec.to_json_line())
    assert data["file"] == "tutors.xlsx"
    assert data["row"] == 10
    assert data["error_type"] == "DUPLICATE_EMAIL"
    assert data["message"] == "email already registered"
    assert data["timestamp"].endswith("Z")
    assert set(data.keys()) == FIXED_KEYS


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.add("f1.csv", 1, "INVALID_ROW", "Nama Lengkap is required")
    buf.add("f1.csv", 2, "IDENTITY_CREATE_ERROR", "duplicate key")
    path = buf.flush()
    assert path is not None and path.exists()
    assert path.parent == Path("logs")
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == FIXED_KEYS
    # buffer is cleared
    assert len(buf) == 0


def test_flush_empty_buffer_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "nested" / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "nested").exists()


def test_flush_creates_directory(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "nested" / "logs")
    buf.add("x.csv", -1, "BATCH_TIMEOUT", "time budget exhausted")
    path = buf.flush()
    assert path.parent == tmp_path / "nested" / "logs"


def test_error_log_buffer_multiple_flushes(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.add("f.csv", 1, "INVALID_ROW", "bad")
    path = buf.flush()
    size1 = path.stat().st_size
    buf.add("f.csv", 2, "INVALID_ROW", "bad again")
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1


def test_records_is_a_copy(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("f.csv", 4, "PARTIAL_GRAPH", "banking failed"))
    snapshot = buf.records
    snapshot.clear()
    assert len(buf) == 1
