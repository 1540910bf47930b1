"""Row Classifier - infers a question type from one raw spreadsheet row.

Rows come from authoring spreadsheets that follow no fixed schema, so the
type is inferred from value patterns. Rules are evaluated in order and the
first match wins:

1. Explicit type code in the first cell (``MC``, ``MA``, ``TF``, ``ESS``, ``FIB``).
2. Correctness tags (``correct`` / ``incorrect``) anywhere in the row:
   more than one ``correct`` is a multiple answer row, otherwise multiple choice.
3. A true/false token in the second cell.
4. An underscore run (a blank) in the first cell.
5. A single long or interrogative cell: essay.
6. More than two cells with no other signal: multiple choice.

Rows matching nothing are dropped, never raised.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from typing import Any, Union

from itembank.models import TYPE_CODES, BatchWarning, QuestionType, WarningCode
from itembank.utils.text_cleanup import clean_cell_text

logger = logging.getLogger(__name__)

Cell = Union[str, int, float, bool, None]
Row = Sequence[Cell]
# (source row index, normalized cells)
IndexedRow = tuple[int, list[str]]

CORRECT_TAG = "correct"
INCORRECT_TAG = "incorrect"
# "incofrect" is a common typo in real item banks.
CORRECTNESS_TAGS = frozenset({CORRECT_TAG, INCORRECT_TAG, "incofrect"})

TRUE_FALSE_TOKENS = frozenset({"true", "false", "t", "f", "1", "0"})
ESSAY_MIN_LENGTH = 20
HEADER_CELLS = frozenset({"question", "questions"})

BLANK_PATTERN = re.compile(r"_+")

_SHEET_NAME_KEYWORDS: list[tuple[QuestionType, tuple[str, ...]]] = [
    (QuestionType.MULTIPLE_CHOICE, ("MULTIPLE CHOICE",)),
    (QuestionType.MULTIPLE_ANSWER, ("MULTIPLE ANSWER",)),
    (QuestionType.TRUE_FALSE, ("TRUE FALSE", "TRUE/FALSE")),
    (QuestionType.ESSAY, ("ESSAY",)),
    (QuestionType.FILL_IN_BLANK, ("FILL IN", "FILL-IN")),
]


# -----------------------------------------------------------------------------
# Cell normalization
# -----------------------------------------------------------------------------


def cell_text(cell: Any) -> str:
    """Render a scalar spreadsheet cell as text.

    Empty cells and NaN become ``""``, integral floats lose their ``.0``
    (spreadsheets store ``4`` as ``4.0``) and booleans become ``true`` /
    ``false``. Line endings are normalized to ``\\n`` and characters XML
    cannot carry are dropped.
    """
    if cell is None:
        return ""
    if isinstance(cell, bool):
        return "true" if cell else "false"
    if isinstance(cell, float):
        if math.isnan(cell):
            return ""
        if cell.is_integer():
            return str(int(cell))
    text = str(cell)
    # numpy.bool_ and friends stringify as "True"/"False"
    if text in ("True", "False") and not isinstance(cell, str):
        return text.lower()
    return clean_cell_text(text)


def normalize_row(row: Row) -> list[str]:
    """Convert every cell to text and drop trailing empty cells."""
    cells = [cell_text(cell) for cell in row]
    while cells and not cells[-1].strip():
        cells.pop()
    return cells


def has_correctness_tags(cells: Sequence[str]) -> bool:
    """True if any cell is a correctness tag (case-insensitive)."""
    return any(cell.strip().lower() in CORRECTNESS_TAGS for cell in cells)


def is_header_row(row: Row) -> bool:
    """True for rows with an empty first cell or a ``Question`` header."""
    cells = normalize_row(row)
    if not cells:
        return True
    first = cells[0].strip().lower()
    return first == "" or first in HEADER_CELLS


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------


def classify(row: Row) -> QuestionType | None:
    """Infer the question type of one row, or None if no rule matches."""
    cells = normalize_row(row)
    if not cells:
        return None

    first = cells[0].strip()

    if first.upper() in TYPE_CODES:
        return QuestionType(first.upper())

    if has_correctness_tags(cells):
        correct_count = sum(1 for cell in cells if cell.strip().lower() == CORRECT_TAG)
        if correct_count > 1:
            return QuestionType.MULTIPLE_ANSWER
        return QuestionType.MULTIPLE_CHOICE

    if len(cells) >= 2 and cells[1].strip().lower() in TRUE_FALSE_TOKENS:
        return QuestionType.TRUE_FALSE

    if BLANK_PATTERN.search(first):
        return QuestionType.FILL_IN_BLANK

    non_empty = [cell.strip() for cell in cells if cell.strip()]
    if len(non_empty) == 1:
        text = non_empty[0]
        if len(text) > ESSAY_MIN_LENGTH or "?" in text:
            return QuestionType.ESSAY

    if len(cells) > 2:
        return QuestionType.MULTIPLE_CHOICE

    return None


def classify_sheet_name(sheet_name: str) -> QuestionType | None:
    """Map a workbook sheet name such as ``Multiple Choice`` or ``TF`` to a type."""
    name = (sheet_name or "").strip().upper()
    if not name:
        return None
    if name in TYPE_CODES:
        return QuestionType(name)
    for question_type, keywords in _SHEET_NAME_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return question_type
    return None


def bucket_rows(
    rows: Sequence[Row],
) -> tuple[dict[QuestionType, list[IndexedRow]], list[BatchWarning]]:
    """Classify every row of a sheet and group the rows by type.

    Header rows are filtered first. Rows no rule recognizes are dropped and
    reported as ``UNCLASSIFIABLE_ROW`` warnings.

    Returns:
        Tuple of (rows grouped by type in input order, warnings).
    """
    buckets: dict[QuestionType, list[IndexedRow]] = {t: [] for t in QuestionType}
    warnings: list[BatchWarning] = []

    for index, row in enumerate(rows):
        if is_header_row(row):
            continue
        question_type = classify(row)
        cells = normalize_row(row)
        if question_type is None:
            logger.warning(f"Could not identify question type for row {index + 1}: {cells}")
            warnings.append(
                BatchWarning(
                    code=WarningCode.UNCLASSIFIABLE_ROW,
                    message=f"Row {index + 1} matched no question type",
                    row_index=index,
                )
            )
            continue
        buckets[question_type].append((index, cells))

    counts = ", ".join(f"{t.value}:{len(buckets[t])}" for t in QuestionType)
    logger.info(f"Categorized rows - {counts}, Skipped:{len(warnings)}")
    return buckets, warnings
