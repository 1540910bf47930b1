"""Spreadsheet loading.

Reads CSV and Excel workbooks into raw rows with pandas (no header row, no
type coercion beyond what the file stores) and groups the rows by question
type, either by sheet name or by per-row classification.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from itembank.classifier import (
    IndexedRow,
    Row,
    bucket_rows,
    classify_sheet_name,
    is_header_row,
    normalize_row,
)
from itembank.errors import SpreadsheetError
from itembank.models import BatchWarning, QuestionType

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS + EXCEL_EXTENSIONS

INSTRUCTIONS_SHEET = "instructions"


@dataclass
class Sheet:
    """One worksheet as a list of raw rows."""

    name: str
    rows: list[list] = field(default_factory=list)


def load_sheets(source: str | Path | bytes, filename: str | None = None) -> list[Sheet]:
    """Read every worksheet of a spreadsheet.

    Args:
        source: File path or raw file bytes.
        filename: Name used to pick the format when `source` is bytes.

    Returns:
        Sheets in workbook order; a CSV yields a single sheet. A sheet named
        ``Instructions`` is skipped and blank rows are dropped.

    Raises:
        SpreadsheetError: If the format is unsupported or the file unreadable.
    """
    if isinstance(source, (bytes, bytearray)):
        name = filename or ""
        data = bytes(source)
    else:
        path = Path(source)
        name = filename or path.name
        try:
            data = path.read_bytes()
        except OSError as e:
            raise SpreadsheetError(f"Cannot read {path}: {e}") from e

    extension = Path(name).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise SpreadsheetError(
            f"Unsupported spreadsheet format '{extension or name}', expected one of {SUPPORTED_EXTENSIONS}"
        )

    try:
        if extension in CSV_EXTENSIONS:
            sheets = [Sheet(name=Path(name).stem or "Sheet1", rows=_read_csv(data))]
        else:
            sheets = _read_workbook(data)
    except (ValueError, KeyError, OSError, UnicodeDecodeError, zipfile.BadZipFile, InvalidFileException) as e:
        raise SpreadsheetError(f"Could not read spreadsheet {name}: {e}") from e

    summary = ", ".join(f"{s.name} ({len(s.rows)} rows)" for s in sheets)
    logger.info(f"Loaded {len(sheets)} sheet(s) from {name}: {summary}")
    return sheets


def _read_csv(data: bytes) -> list[list]:
    text = data.decode("utf-8-sig")
    # Rows are ragged; pandas needs the widest row up front.
    width = max((len(row) for row in csv.reader(io.StringIO(text))), default=0)
    if width == 0:
        return []
    df = pd.read_csv(
        io.StringIO(text),
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )
    return _frame_rows(df)


def _read_workbook(data: bytes) -> list[Sheet]:
    frames = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, engine="openpyxl")
    sheets = []
    for sheet_name, df in frames.items():
        if str(sheet_name).strip().lower() == INSTRUCTIONS_SHEET:
            logger.debug(f"Skipping sheet '{sheet_name}'")
            continue
        sheets.append(Sheet(name=str(sheet_name), rows=_frame_rows(df)))
    return sheets


def _frame_rows(df: pd.DataFrame) -> list[list]:
    rows = []
    for values in df.itertuples(index=False, name=None):
        row = list(values)
        if normalize_row(row):
            rows.append(row)
    return rows


def rows_by_type(
    sheets: list[Sheet],
) -> tuple[dict[QuestionType, list[IndexedRow]], list[BatchWarning]]:
    """Group the rows of all sheets by question type.

    In a multi-sheet workbook a sheet whose name names a type (``MC``,
    ``Multiple Choice``, ``True/False``...) assigns that type to every row;
    other sheets, and single-sheet files, fall back to row classification.
    """
    buckets: dict[QuestionType, list[IndexedRow]] = {t: [] for t in QuestionType}
    warnings: list[BatchWarning] = []

    for sheet in sheets:
        sheet_type = classify_sheet_name(sheet.name) if len(sheets) > 1 else None
        if sheet_type is not None:
            typed = _typed_rows(sheet.rows)
            logger.info(f"Sheet '{sheet.name}' -> {sheet_type.value} ({len(typed)} rows)")
            buckets[sheet_type].extend(typed)
            continue

        sheet_buckets, sheet_warnings = bucket_rows(sheet.rows)
        for question_type, rows in sheet_buckets.items():
            buckets[question_type].extend(rows)
        warnings.extend(sheet_warnings)

    return buckets, warnings


def _typed_rows(rows: list[Row]) -> list[IndexedRow]:
    return [(index, normalize_row(row)) for index, row in enumerate(rows) if not is_header_row(row)]
