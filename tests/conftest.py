# Shared pytest fixtures
from __future__ import annotations

import csv
import tempfile
from datetime import date
from pathlib import Path

import pytest

from tutor_import.logging.init import reset_logging
from tutor_import.models.reference import ReferenceEntity
from tutor_import.models.upload import UploadedRow
from tutor_import.reference.cache import ReferenceCache
from tutor_import.validation.validator import ValidationContext

FIXED_TODAY = date(2025, 6, 1)

PROVINCES = [
    ReferenceEntity("p-jkt", "DKI Jakarta", local_name="Daerah Khusus Ibukota Jakarta"),
    ReferenceEntity("p-jabar", "Jawa Barat", local_name="West Java"),
    ReferenceEntity("p-jatim", "Jawa Timur", local_name="East Java"),
    ReferenceEntity("p-diy", "DI Yogyakarta", local_name="Daerah Istimewa Yogyakarta"),
]
CITIES = [
    ReferenceEntity("c-jaksel", "Jakarta Selatan", local_name="Kota Jakarta Selatan", parent_id="p-jkt"),
    ReferenceEntity("c-jakbar", "Jakarta Barat", local_name="Kota Jakarta Barat", parent_id="p-jkt"),
    ReferenceEntity("c-bandung", "Bandung", local_name="Kota Bandung", parent_id="p-jabar"),
    ReferenceEntity("c-kab-bandung", "Kabupaten Bandung", parent_id="p-jabar"),
    ReferenceEntity("c-surabaya", "Surabaya", local_name="Kota Surabaya", parent_id="p-jatim"),
]
BANKS = [
    ReferenceEntity("b-bca", "BCA", local_name="bca", alternate_name="Bank Central Asia"),
    ReferenceEntity("b-bri", "Bank Rakyat Indonesia", local_name="BRI"),
    ReferenceEntity("b-mandiri", "Bank Mandiri", local_name="Mandiri"),
]
SUBJECTS = [
    ReferenceEntity("s-mtk", "Matematika", local_name="Mathematics", alternate_name="MTK"),
    ReferenceEntity("s-fis", "Fisika", local_name="Physics"),
    ReferenceEntity("s-eng", "Bahasa Inggris", local_name="English"),
    ReferenceEntity("s-kim", "Kimia", local_name="Chemistry"),
]


@pytest.fixture(autouse=True)
def clean_logging():
    # handlers bind sys.stdout at setup time; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """timezone: Asia/Jakarta
error_log_dir: logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
reference:
  directory: ./reference
matching:
  reject_floor: 50
  location_confidence: 90
  bank_confidence: 90
  subject_confidence: 75
persistence:
  batch_timeout_seconds: 600
  statement_timeout_ms: 30000
  max_code_attempts: 5
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def reference_cache() -> ReferenceCache:
    return ReferenceCache.from_entities(PROVINCES, CITIES, BANKS, SUBJECTS)


@pytest.fixture()
def context(reference_cache: ReferenceCache) -> ValidationContext:
    return ValidationContext(cache=reference_cache, today=FIXED_TODAY)


def _write_entities(path: Path, entities: list[ReferenceEntity]) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(["id", "name", "local_name", "parent_id", "alternate_name"])
        for e in entities:
            w.writerow([e.id, e.name, e.local_name or "", e.parent_id or "", e.alternate_name or ""])


@pytest.fixture()
def reference_dir(tmp_path: Path) -> Path:
    d = tmp_path / "reference"
    d.mkdir()
    _write_entities(d / "provinces.csv", PROVINCES)
    _write_entities(d / "cities.csv", CITIES)
    _write_entities(d / "banks.csv", BANKS)
    _write_entities(d / "subjects.csv", SUBJECTS)
    return d


@pytest.fixture()
def write_csv(tmp_path: Path):
    """write_csv(header, rows, name="upload.csv") -> Path"""
    def _write(header: list[str], rows: list[list[str]], name: str = "upload.csv") -> Path:
        path = tmp_path / name
        with path.open("w", encoding="utf-8", newline="") as f:
            w = csv.writer(f)
            w.writerow(header)
            w.writerows(rows)
        return path
    return _write


def tutor_row(n: int, extra: dict[str, str] | None = None) -> dict[str, str]:
    """Minimal valid upload row (template headers)."""
    values = {
        "Email Aktif": f"tutor{n}@example.com",
        "Nama Lengkap": f"Tutor Nomor {n}",
        "No. HP Utama (+62)": f"0812{n:08d}",
    }
    values.update(extra or {})
    return values


def uploaded(n: int, extra: dict[str, str] | None = None) -> UploadedRow:
    return UploadedRow(row_number=n, values=tutor_row(n, extra))


@pytest.fixture()
def make_values():
    return tutor_row


@pytest.fixture()
def make_row():
    return uploaded
