"""Conversion pipeline used by the CLI and the API.

    spreadsheet --load/classify/build--> questions --encode--> QTI zip
    QTI zip --decode--> questions --render--> exam PDF (+ answer key)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from itembank.builder import build_batch
from itembank.loaders import load_sheets, rows_by_type
from itembank.models import (
    BuildResult,
    DecodeResult,
    EncodeResult,
    Question,
    QuizMetadata,
    RenderResult,
)
from itembank.qti import decode, encode
from itembank.render import RenderOptions, render, render_answer_key

logger = logging.getLogger(__name__)


def import_spreadsheet(source: str | Path | bytes, filename: str | None = None) -> BuildResult:
    """Load a spreadsheet and build canonical questions from its rows."""
    sheets = load_sheets(source, filename)
    buckets, warnings = rows_by_type(sheets)
    result = build_batch(buckets)
    result.warnings = warnings + result.warnings
    result.skipped += len(warnings)
    return result


def export_qti(questions: Sequence[Question], metadata: QuizMetadata | None = None) -> EncodeResult:
    return encode(questions, metadata)


def convert_spreadsheet_to_qti(
    source: str | Path | bytes,
    metadata: QuizMetadata | None = None,
    filename: str | None = None,
) -> tuple[BuildResult, EncodeResult]:
    """Spreadsheet to QTI zip in one step.

    Build warnings and encode warnings are kept on their own results so
    callers can tell row problems from item problems.
    """
    built = import_spreadsheet(source, filename)
    logger.info(f"Imported {len(built.questions)} questions ({len(built.warnings)} warnings)")
    encoded = encode(built.questions, metadata)
    return built, encoded


def load_qti(source: str | Path | bytes) -> DecodeResult:
    """Decode a QTI zip given as a path or raw bytes."""
    data = source if isinstance(source, (bytes, bytearray)) else Path(source).read_bytes()
    return decode(bytes(data))


def print_exam(
    questions: Sequence[Question],
    options: RenderOptions | None = None,
    answer_key: bool = False,
) -> RenderResult:
    """Render the exam, or the answer key when `answer_key` is set."""
    if answer_key:
        return render_answer_key(questions, options)
    return render(questions, options)


def convert_qti_to_pdf(
    source: str | Path | bytes,
    options: RenderOptions | None = None,
    answer_key: bool = False,
) -> tuple[DecodeResult, RenderResult]:
    """QTI zip to PDF; the quiz title and description fill unset options."""
    decoded = load_qti(source)
    options = options_for_quiz(decoded.metadata, options)
    return decoded, print_exam(decoded.questions, options, answer_key)


def options_for_quiz(metadata: QuizMetadata, options: RenderOptions | None) -> RenderOptions:
    """Fill title and description the caller did not set from the quiz metadata."""
    if options is None:
        return RenderOptions(title=metadata.title, description=metadata.description)
    update = {}
    if "title" not in options.model_fields_set:
        update["title"] = metadata.title
    if "description" not in options.model_fields_set:
        update["description"] = metadata.description
    return options.model_copy(update=update) if update else options
