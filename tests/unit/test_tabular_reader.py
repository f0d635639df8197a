from __future__ import annotations

import io
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from tutor_import.tabular.reader import UploadError, UploadErrorKind, parse_upload


def test_csv_rows_keyed_by_header_in_order():
    data = "Email Aktif,Nama Lengkap\na@x.com,Ani\nb@x.com,Budi\n".encode("utf-8")
    res = parse_upload(data, "csv")
    assert res.headers == ["Email Aktif", "Nama Lengkap"]
    assert [r.row_number for r in res.rows] == [1, 2]
    assert res.rows[0].values == {"Email Aktif": "a@x.com", "Nama Lengkap": "Ani"}
    assert res.warnings == []


def test_csv_bom_and_values_are_trimmed_strings():
    data = "\ufeffNo HP,Kode Pos\n  0812345678 , 01234 \n".encode("utf-8")
    res = parse_upload(data, ".CSV")
    assert res.headers == ["No HP", "Kode Pos"]
    # leading zeros survive: nothing is parsed as a number
    assert res.rows[0].values == {"No HP": "0812345678", "Kode Pos": "01234"}


def test_blank_rows_skipped_but_counted():
    data = b"Nama\nAni\n\n,\nBudi\n"
    res = parse_upload(data, "csv")
    assert [(r.row_number, r.values["Nama"]) for r in res.rows] == [(1, "Ani"), (4, "Budi")]


def test_embedded_line_breaks_collapsed():
    data = b'Alamat\n"Jl. Mawar\nNo. 5"\n'
    res = parse_upload(data, "csv")
    assert res.rows[0].values["Alamat"] == "Jl. Mawar No. 5"


def test_extra_cells_warn_and_are_dropped():
    data = b"A,B\n1,2\n3,4,5\n"
    res = parse_upload(data, "csv")
    assert res.rows[1].values == {"A": "3", "B": "4"}
    assert len(res.warnings) == 1
    assert "expected 2" in res.warnings[0]


def test_short_rows_padded_with_empty_strings():
    res = parse_upload(b"A,B,C\n1\n", "csv")
    assert res.rows[0].values == {"A": "1", "B": "", "C": ""}


def test_duplicate_header_first_wins_with_warning():
    res = parse_upload(b"Nama,Nama\nAni,Other\n", "csv")
    assert res.headers == ["Nama"]
    assert res.rows[0].values == {"Nama": "Ani"}
    assert any("duplicate header" in w for w in res.warnings)


def test_blank_header_with_data_warns():
    res = parse_upload(b"Nama,\nAni,stray\n", "csv")
    assert res.headers == ["Nama"]
    assert any("no header" in w for w in res.warnings)


@pytest.mark.parametrize(
    "data, ext, kind",
    [
        (b"", "csv", UploadErrorKind.EMPTY_FILE),
        (b"   \n", "csv", UploadErrorKind.EMPTY_FILE),
        (b"Nama\n", "csv", UploadErrorKind.NO_DATA_ROWS),
        (b"Nama\n\n\n", "csv", UploadErrorKind.NO_DATA_ROWS),
        (b",,\nx,y,z\n", "csv", UploadErrorKind.MISSING_HEADER),
        (b"Nama\n\xff\xfe\xfa\n", "csv", UploadErrorKind.UNREADABLE_ENCODING),
        (b"Nama\nAni\n", "pdf", UploadErrorKind.UNSUPPORTED_FORMAT),
        (b"Nama\nAni\n", None, UploadErrorKind.UNSUPPORTED_FORMAT),
        (b"not a workbook", "xlsx", UploadErrorKind.MALFORMED),
    ],
)
def test_structural_problems_raise_upload_error(data, ext, kind):
    with pytest.raises(UploadError) as exc:
        parse_upload(data, ext)
    assert exc.value.kind is kind


def test_path_source_uses_suffix(tmp_path: Path):
    p = tmp_path / "tutors.csv"
    p.write_text("Nama\nAni\n", encoding="utf-8")
    res = parse_upload(p)
    assert res.rows[0].values == {"Nama": "Ani"}


def test_xlsx_first_sheet_and_cell_rendering(tmp_path: Path):
    p = tmp_path / "tutors.xlsx"
    df = pd.DataFrame(
        [
            ["ani@x.com", datetime(1995, 3, 15), 2017.0, 3.5],
            [None, None, None, None],
            ["budi@x.com", None, 2018.0, None],
        ],
        columns=["Email Aktif", "Tanggal Lahir", "Tahun Lulus", "IPK/GPA"],
    )
    with pd.ExcelWriter(p, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Tutors", index=False)
        pd.DataFrame([["ignored"]], columns=["Other"]).to_excel(writer, sheet_name="Second", index=False)

    res = parse_upload(p)
    assert res.headers == ["Email Aktif", "Tanggal Lahir", "Tahun Lulus", "IPK/GPA"]
    assert [r.row_number for r in res.rows] == [1, 3]
    first = res.rows[0].values
    assert first["Tanggal Lahir"] == "1995-03-15"
    assert first["Tahun Lulus"] == "2017"
    assert first["IPK/GPA"] == "3.5"
    assert res.rows[1].values["Tanggal Lahir"] == ""


def test_file_object_source():
    res = parse_upload(io.BytesIO(b"Nama\nAni\n"), "csv")
    assert res.row_count == 1
