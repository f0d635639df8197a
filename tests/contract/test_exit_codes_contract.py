from __future__ import annotations

from pathlib import Path

import pytest

from tutor_import.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL
from tutor_import.cli.__main__ import main as cli_main

"""Exit code contract: 0 all rows valid and saved, 2 invalid / failed rows, 1 fatal."""

HEADER = "Email Aktif,Nama Lengkap,No. HP Utama (+62)\n"


@pytest.fixture(autouse=True)
def no_database(monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")


def _upload(workdir: Path, body: str) -> Path:
    path = workdir / "data" / "tutors.csv"
    path.write_text(HEADER + body, encoding="utf-8")
    return path


def test_all_rows_saved(temp_workdir: Path, reference_dir: Path, capsys):
    upload = _upload(temp_workdir, "a@example.com,Ani,081211112222\n")
    assert cli_main(["import", str(upload), "--reference-dir", str(reference_dir), "--commit", "--dry-run"]) == EXIT_SUCCESS_ALL
    assert "status=completed" in capsys.readouterr().out


def test_clean_preview(temp_workdir: Path, reference_dir: Path):
    upload = _upload(temp_workdir, "a@example.com,Ani,081211112222\n")
    assert cli_main(["import", str(upload), "--reference-dir", str(reference_dir)]) == EXIT_SUCCESS_ALL


def test_invalid_rows(temp_workdir: Path, reference_dir: Path):
    upload = _upload(temp_workdir, "a@example.com,Ani,081211112222\n,Budi,081233334444\n")
    assert cli_main(["import", str(upload), "--reference-dir", str(reference_dir)]) == EXIT_PARTIAL_FAILURE


def test_fatal_config(temp_workdir: Path, reference_dir: Path, capsys):
    (temp_workdir / "config" / "import.yml").write_text("matching:\n  reject_floor: high\n", encoding="utf-8")
    upload = _upload(temp_workdir, "a@example.com,Ani,081211112222\n")
    assert cli_main(["import", str(upload), "--reference-dir", str(reference_dir)]) == EXIT_FATAL
    assert "ERROR ConfigError: config validation failed: matching/reject_floor:" in capsys.readouterr().out


def test_fatal_upload(temp_workdir: Path, reference_dir: Path, capsys):
    upload = _upload(temp_workdir, "")
    assert cli_main(["import", str(upload), "--reference-dir", str(reference_dir)]) == EXIT_FATAL
    assert "ERROR UploadError:" in capsys.readouterr().out


def test_fatal_reference_data(temp_workdir: Path, capsys):
    upload = _upload(temp_workdir, "a@example.com,Ani,081211112222\n")
    assert cli_main(["import", str(upload), "--reference-dir", str(temp_workdir / "nowhere")]) == EXIT_FATAL
    assert "ERROR ReferenceDataUnavailable:" in capsys.readouterr().out
