from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from .errors import EmptyFileError, UnsupportedFormatError

"""Source file readers.

- .csv / .txt: decoded whole into one string (UTF-8, BOM tolerated; cp1252
  fallback for spreadsheet exports that are not UTF-8)
- .xlsx / .xls: first sheet read with pandas, returned as header + string rows
- .json: parsed document (backup exports)
"""

__all__ = [
    "TEXT_SUFFIXES",
    "EXCEL_SUFFIXES",
    "JSON_SUFFIXES",
    "read_text",
    "read_excel_rows",
    "read_json",
    "cell_to_text",
]

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = frozenset({".csv", ".txt"})
EXCEL_SUFFIXES = frozenset({".xlsx", ".xls"})
JSON_SUFFIXES = frozenset({".json"})


def read_text(path: Path) -> str:
    """Read a delimited text file into memory."""
    if path.suffix.lower() not in TEXT_SUFFIXES:
        raise UnsupportedFormatError(f"unsupported text file type: {path.name}")
    raw = path.read_bytes()
    try:
        # utf-8-sig ではなく utf-8: BOM 除去は detector 側の責務
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning(f"{path.name}: not valid UTF-8, decoding as cp1252")
        return raw.decode("cp1252", errors="replace")


def cell_to_text(value: Any) -> str:
    """Render one spreadsheet cell the way it would appear in a CSV export."""
    if value is None:
        return ""
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    if not isinstance(value, str) and pd.isna(value):
        return ""
    if isinstance(value, (pd.Timestamp, datetime)):
        if (value.hour, value.minute, value.second) == (0, 0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_excel_rows(path: Path) -> tuple[list[str], list[list[str]]]:
    """Read the first sheet of a workbook as ``(header, rows)``.

    Fully blank rows are dropped before the header is taken, mirroring the
    blank-line filter applied to text files.
    """
    if path.suffix.lower() not in EXCEL_SUFFIXES:
        raise UnsupportedFormatError(f"unsupported spreadsheet type: {path.name}")
    df = pd.read_excel(path, sheet_name=0, header=None)
    table: list[list[str]] = []
    for _, raw in df.iterrows():
        if raw.isna().all():
            continue
        cells = [cell_to_text(v) for v in raw.tolist()]
        if not any(cells):
            continue
        table.append(cells)
    if len(table) < 2:
        raise EmptyFileError(f"{path.name}: a header row and at least one data row are required")
    return table[0], table[1:]


def read_json(path: Path) -> Any:
    if path.suffix.lower() not in JSON_SUFFIXES:
        raise UnsupportedFormatError(f"unsupported json file type: {path.name}")
    try:
        return json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as e:
        raise UnsupportedFormatError(f"{path.name}: invalid JSON: {e}") from e
