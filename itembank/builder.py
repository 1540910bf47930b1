"""Question Model Builder - turns a classified row into a canonical Question.

Column layouts per type:

- MC / MA: ``[code?] text option (tag option tag ...)``. With correctness
  tags anywhere in the row options are read as ``(text, tag)`` pairs,
  otherwise one option per cell and the first option is taken as correct.
- TF: ``text answer`` where the answer is true for ``true``, ``t`` or ``1``.
- ESS: ``text``.
- FIB: ``text answer answer ...``; answers keep their case.

Building never raises for bad rows: rows that are too short are dropped and
every adjustment is reported as a BatchWarning so partial batches still
produce usable output.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from itembank.classifier import (
    BLANK_PATTERN,
    CORRECT_TAG,
    IndexedRow,
    Row,
    bucket_rows,
    has_correctness_tags,
    normalize_row,
)
from itembank.models import (
    TYPE_CODES,
    BatchWarning,
    BuildResult,
    Option,
    Question,
    QuestionType,
    WarningCode,
)

logger = logging.getLogger(__name__)

# Untagged choice rows carry no correctness signal; by convention the first
# listed option is the correct one. Existing item banks rely on this.
UNTAGGED_CORRECT_INDEX = 0

TRUE_TOKENS = frozenset({"true", "t", "1"})
UNRESOLVED_ANSWER_PLACEHOLDER = "(No answer provided)"

MIN_CELLS: dict[QuestionType, int] = {
    QuestionType.MULTIPLE_CHOICE: 3,
    QuestionType.MULTIPLE_ANSWER: 3,
    QuestionType.TRUE_FALSE: 2,
    QuestionType.ESSAY: 1,
    QuestionType.FILL_IN_BLANK: 1,
}


def question_id(question_type: QuestionType, index: int) -> str:
    """Batch-unique id such as ``mc_0`` or ``fib_3``."""
    return f"{question_type.value.lower()}_{index}"


def build(
    question_type: QuestionType,
    row: Row,
    index: int = 0,
    warnings: list[BatchWarning] | None = None,
    row_index: int | None = None,
) -> Question | None:
    """Build one Question from a raw row.

    Args:
        question_type: Type assigned by the classifier or the sheet name.
        row: Raw cells.
        index: Position of the row within its type bucket; seeds the id.
        warnings: Optional list that receives any BatchWarning produced.
        row_index: Source row index, copied into warnings.

    Returns:
        The Question, or None when the row is too short for its type.
    """
    if warnings is None:
        warnings = []
    cells = normalize_row(row)
    qid = question_id(question_type, index)

    minimum = MIN_CELLS[question_type]
    if len(cells) < minimum:
        logger.warning(f"Row for {qid} has {len(cells)} cells, {question_type.value} needs {minimum}")
        warnings.append(
            BatchWarning(
                code=WarningCode.INPUT_TOO_SHORT,
                message=f"{question_type.label} row needs at least {minimum} cells, got {len(cells)}",
                row_index=row_index,
                question_id=qid,
            )
        )
        return None

    # A leading type code is never question text.
    if len(cells) > 1 and cells[0].strip().upper() in TYPE_CODES:
        payload = cells[1:]
    else:
        payload = cells

    if question_type in (QuestionType.MULTIPLE_CHOICE, QuestionType.MULTIPLE_ANSWER):
        return _build_choice(question_type, qid, payload, has_correctness_tags(cells), warnings, row_index)
    if question_type == QuestionType.TRUE_FALSE:
        return _build_true_false(qid, payload)
    if question_type == QuestionType.ESSAY:
        return Question(id=qid, type=question_type, text=payload[0].strip())
    if question_type == QuestionType.FILL_IN_BLANK:
        return _build_fill_in_blank(qid, payload, warnings, row_index)
    raise ValueError(f"Unhandled question type: {question_type!r}")


def _build_choice(
    question_type: QuestionType,
    qid: str,
    payload: list[str],
    tagged: bool,
    warnings: list[BatchWarning],
    row_index: int | None,
) -> Question | None:
    text = payload[0].strip()
    option_cells = payload[1:]

    texts: list[str] = []
    flags: list[bool] = []
    if tagged:
        for i in range(0, len(option_cells) - 1, 2):
            option_text = option_cells[i].strip()
            if not option_text:
                continue
            texts.append(option_text)
            flags.append(option_cells[i + 1].strip().lower() == CORRECT_TAG)
    else:
        for cell in option_cells:
            if cell.strip():
                texts.append(cell.strip())
        flags = [i == UNTAGGED_CORRECT_INDEX for i in range(len(texts))]

    if not texts:
        warnings.append(
            BatchWarning(
                code=WarningCode.INPUT_TOO_SHORT,
                message=f"{question_type.label} row has no options",
                row_index=row_index,
                question_id=qid,
            )
        )
        return None

    correct = [i for i, flag in enumerate(flags) if flag]
    if not correct:
        logger.warning(f"No correct answer tagged for {qid}, defaulting to first option")
        warnings.append(
            BatchWarning(
                code=WarningCode.AMBIGUOUS_CORRECTNESS,
                message="No option tagged correct; first option assumed correct",
                row_index=row_index,
                question_id=qid,
            )
        )
        flags[0] = True
    elif question_type == QuestionType.MULTIPLE_CHOICE and len(correct) > 1:
        logger.warning(f"{qid} tags {len(correct)} options correct, keeping the first")
        warnings.append(
            BatchWarning(
                code=WarningCode.AMBIGUOUS_CORRECTNESS,
                message=f"{len(correct)} options tagged correct on a multiple choice row; first kept",
                row_index=row_index,
                question_id=qid,
            )
        )
        flags = [i == correct[0] for i in range(len(flags))]

    options = [Option(text=t, is_correct=f) for t, f in zip(texts, flags)]
    return Question(id=qid, type=question_type, text=text, options=options)


def _build_true_false(qid: str, payload: list[str]) -> Question:
    answer = payload[1].strip().lower() if len(payload) > 1 else ""
    return Question(
        id=qid,
        type=QuestionType.TRUE_FALSE,
        text=payload[0].strip(),
        is_true=answer in TRUE_TOKENS,
    )


def _build_fill_in_blank(
    qid: str,
    payload: list[str],
    warnings: list[BatchWarning],
    row_index: int | None,
) -> Question:
    text = payload[0].strip()
    answers = [cell.strip() for cell in payload[1:] if cell.strip()]
    unresolved = False

    if not answers:
        if BLANK_PATTERN.search(text):
            answers = [UNRESOLVED_ANSWER_PLACEHOLDER]
            unresolved = True
            message = "Blank has no answer; placeholder answer inserted"
        else:
            message = "Fill in blank question has no answers"
        logger.warning(f"{qid}: {message}")
        warnings.append(
            BatchWarning(
                code=WarningCode.MISSING_ANSWERS,
                message=message,
                row_index=row_index,
                question_id=qid,
            )
        )

    return Question(
        id=qid,
        type=QuestionType.FILL_IN_BLANK,
        text=text,
        correct_answers=answers,
        answers_unresolved=unresolved,
    )


# -----------------------------------------------------------------------------
# Batch building
# -----------------------------------------------------------------------------


def build_batch(rows_by_type: Mapping[QuestionType, Sequence[IndexedRow | Row]]) -> BuildResult:
    """Build every bucket of rows, in QuestionType order.

    Buckets may hold plain rows or ``(row_index, row)`` pairs as produced by
    :func:`itembank.classifier.bucket_rows`.
    """
    result = BuildResult()

    for question_type in QuestionType:
        for index, entry in enumerate(rows_by_type.get(question_type, [])):
            row_index, row = _unpack(entry, index)
            try:
                question = build(question_type, row, index, result.warnings, row_index)
            except Exception as e:
                logger.error(f"Failed to build {question_type.value} row {row_index}: {e}")
                result.warnings.append(
                    BatchWarning(
                        code=WarningCode.ITEM_GENERATION_FAILED,
                        message=str(e),
                        row_index=row_index,
                        question_id=question_id(question_type, index),
                    )
                )
                question = None
            if question is None:
                result.skipped += 1
            else:
                result.questions.append(question)

    logger.info(f"Built {len(result.questions)} questions, skipped {result.skipped} rows")
    return result


def build_from_rows(rows: Sequence[Row]) -> BuildResult:
    """Classify each row of an untyped sheet, then build the questions."""
    buckets, warnings = bucket_rows(rows)
    result = build_batch(buckets)
    result.warnings = warnings + result.warnings
    result.skipped += len(warnings)
    return result


def _unpack(entry: IndexedRow | Row, index: int) -> tuple[int, Row]:
    if isinstance(entry, tuple) and len(entry) == 2 and isinstance(entry[0], int) and isinstance(entry[1], list):
        return entry[0], entry[1]
    return index, entry
