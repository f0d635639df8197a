from __future__ import annotations

from datetime import date

import pytest

from tutor_import.fields.catalog import FIELDS_BY_NAME
from tutor_import.validation.coerce import (
    IssueSeverity,
    age_on,
    coerce_value,
    normalize_phone,
    parse_date,
    parse_number,
    split_tokens,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0812-3456-7890", "6281234567890"),
        ("+62 812 3456 7890", "6281234567890"),
        ("812345678", "62812345678"),
        ("6281234567890", "6281234567890"),
        ("12345", None),
        ("0812345678901234567", None),
        ("n/a", None),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize(
    "raw, decimal, expected",
    [
        ("Rp 150.000", False, 150000),
        ("150.000,00", False, 150000),
        ("1,250,000", False, 1250000),
        ("-5", False, -5),
        ("3,75", True, 3.75),
        ("3.75", True, 3.75),
        ("4", True, 4.0),
        ("abc", False, None),
    ],
)
def test_parse_number(raw, decimal, expected):
    assert parse_number(raw, decimal) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("15/03/1990", date(1990, 3, 15)),
        ("15-03-1990", date(1990, 3, 15)),
        ("1990-03-15", date(1990, 3, 15)),
        ("1990-03-15 00:00:00", date(1990, 3, 15)),
        ("15 Maret 1990", date(1990, 3, 15)),
        ("15-Mar-1990", date(1990, 3, 15)),
        ("15/03/90", date(1990, 3, 15)),
        ("15/03/05", date(2005, 3, 15)),
        ("32874", date(1990, 1, 1)),
        ("1990", None),
        ("2005", None),
        ("45000", date(2023, 3, 15)),
        ("31/02/1990", None),
        ("15 Brumaire 1990", None),
        ("", None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


def test_age_on_respects_birthday():
    today = date(2025, 6, 1)
    assert age_on(date(1990, 3, 15), today) == 35
    assert age_on(date(1990, 6, 2), today) == 34
    assert age_on(date(1990, 6, 1), today) == 35


def test_split_tokens():
    assert split_tokens("Matematika, Fisika;Kimia | Biologi,,") == ["Matematika", "Fisika", "Kimia", "Biologi"]
    assert split_tokens("  ") == []


def _coerce(field_name: str, text: str):
    return coerce_value(text, FIELDS_BY_NAME[field_name])


def test_email_lowercased_and_checked():
    assert _coerce("email", " Budi@Example.COM ").value == "budi@example.com"
    bad = _coerce("email", "budi@")
    assert bad.value is None
    assert bad.problem == "invalid email format 'budi@'"
    assert bad.severity is None


def test_phone_problem():
    bad = _coerce("noHp2", "123")
    assert bad.value is None
    assert "expected 10-15 digits" in bad.problem


def test_select_matches_label_or_value():
    assert _coerce("jenisKelamin", "P").value == "perempuan"
    assert _coerce("jenisKelamin", "laki-laki").value == "laki_laki"
    assert _coerce("statusTutor", "active").value == "active"
    bad = _coerce("agama", "Atheis")
    assert bad.value is None
    assert bad.problem.startswith("unknown option 'Atheis' (allowed: Islam, Kristen,")


def test_hard_range_is_error():
    result = _coerce("ipk", "4,5")
    assert result.value == 4.5
    assert result.severity is IssueSeverity.ERROR
    assert result.problem == "4.5 is outside the expected range 0 to 4"


def test_soft_range_is_warning():
    result = _coerce("hourlyRate", "10.000")
    assert result.value == 10000
    assert result.severity is IssueSeverity.WARNING
    assert result.problem == "10000 is outside the expected range 25000 to 1000000"


def test_not_a_number():
    result = _coerce("tahunLulus", "dua ribu")
    assert result.value is None
    assert result.problem == "'dua ribu' is not a number"


def test_date_stored_iso():
    assert _coerce("tanggalLahir", "15/03/1990").value == "1990-03-15"
    assert _coerce("tanggalLahir", "kemarin").problem == "unrecognized date 'kemarin' (use DD/MM/YYYY)"


def test_checkbox_maps_known_and_keeps_unknown():
    result = _coerce("teachingMethods", "Online, Teleport, online")
    assert result.value == ["online_zoom_gmeet", "Teleport"]
    assert result.severity is IssueSeverity.WARNING
    assert "'Teleport'" in result.problem


def test_checkbox_without_options_keeps_tokens():
    assert _coerce("availableSchedule", "Senin, Rabu").value == ["Senin", "Rabu"]


@pytest.mark.parametrize("raw, expected", [("Ya", True), ("TRUE", True), ("1", True), ("Tidak", False), ("no", False)])
def test_switch(raw, expected):
    assert _coerce("alamatSamaDenganKTP", raw).value is expected


def test_text_length_warning():
    result = _coerce("namaPanggilan", "x" * 51)
    assert result.value == "x" * 51
    assert result.severity is IssueSeverity.WARNING
    assert result.problem == "longer than 50 characters (51)"
