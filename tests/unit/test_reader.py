from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pandas as pd
import pytest

from grc_import.tabular.errors import EmptyFileError, UnsupportedFormatError
from grc_import.tabular.reader import cell_to_text, read_excel_rows, read_json, read_text


def test_read_text_utf8(temp_workdir: Path):
    f = temp_workdir / "data" / "a.csv"
    f.write_text("code;nome\nC-1;Gestão\n", encoding="utf-8")
    assert read_text(f) == "code;nome\nC-1;Gestão\n"


def test_read_text_keeps_bom_for_detector(temp_workdir: Path):
    f = temp_workdir / "data" / "bom.csv"
    f.write_bytes(b"\xef\xbb\xbfcode\n")
    assert read_text(f).startswith("\ufeff")


def test_read_text_cp1252_fallback(temp_workdir: Path):
    f = temp_workdir / "data" / "legacy.csv"
    f.write_bytes("code;nome\nC-1;Gestão\n".encode("cp1252"))
    assert read_text(f) == "code;nome\nC-1;Gestão\n"


def test_read_text_rejects_other_suffix(temp_workdir: Path):
    f = temp_workdir / "data" / "a.xlsx"
    f.write_bytes(b"")
    with pytest.raises(UnsupportedFormatError):
        read_text(f)


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, ""),
        (float("nan"), ""),
        (pd.NaT, ""),
        (3.0, "3"),
        (2.5, "2.5"),
        (7, "7"),
        (" x ", "x"),
        (pd.Timestamp("2024-05-01"), "2024-05-01"),
        (datetime(2024, 5, 1, 10, 30), "2024-05-01T10:30:00"),
        (date(2024, 5, 1), "2024-05-01"),
        (True, "True"),
        ([1, "a"], '[1, "a"]'),
    ],
)
def test_cell_to_text(value, expected):
    assert cell_to_text(value) == expected


def test_read_excel_rows(temp_workdir: Path):
    path = temp_workdir / "data" / "v.xlsx"
    pd.DataFrame([["VND-001", "ACME"], [None, None], ["", "Beta"]], columns=["Código", "Nome"]).to_excel(
        path, index=False
    )
    header, rows = read_excel_rows(path)
    assert header == ["Código", "Nome"]
    assert rows == [["VND-001", "ACME"], ["", "Beta"]]


def test_read_excel_rows_header_only(temp_workdir: Path):
    path = temp_workdir / "data" / "empty.xlsx"
    pd.DataFrame(columns=["code", "name"]).to_excel(path, index=False)
    with pytest.raises(EmptyFileError):
        read_excel_rows(path)


def test_read_json(temp_workdir: Path):
    good = temp_workdir / "data" / "b.json"
    good.write_text('{"risks": []}', encoding="utf-8")
    assert read_json(good) == {"risks": []}
    bad = temp_workdir / "data" / "c.json"
    bad.write_text("{", encoding="utf-8")
    with pytest.raises(UnsupportedFormatError, match="invalid JSON"):
        read_json(bad)
