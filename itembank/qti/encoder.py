"""QTI Encoder - serializes canonical questions into a QTI 1.2 package.

For each question:
1. Generate fresh item/option identifiers
2. Build the ``<item>`` for its type (presentation + scoring conditions)
3. Collect it, or record a warning and drop it if generation fails

The collected items are then wrapped with a manifest and the quiz metadata
document and zipped.
"""

from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from dataclasses import dataclass, field

from itembank.config import get_settings
from itembank.errors import EmptySelectionError, UnsupportedQuestionTypeError
from itembank.models import (
    BatchWarning,
    EncodeResult,
    Option,
    Question,
    QuestionType,
    QuizMetadata,
    WarningCode,
)
from itembank.qti.archive import write_archive
from itembank.qti.conditions import (
    Conjunction,
    Equality,
    Negation,
    Otherwise,
    ResponseCondition,
    respcondition_element,
)
from itembank.qti.documents import (
    ITEMS_FILENAME,
    MANIFEST_FILENAME,
    META_FILENAME,
    build_assessment_meta,
    build_items_document,
    build_manifest,
)
from itembank.qti.identifiers import (
    ANSWER_PREFIX,
    QUESTION_PREFIX,
    QUIZ_PREFIX,
    IdentifierRegistry,
)
from itembank.qti.text import html_paragraph
from itembank.utils.filenames import QTI_SUFFIX, suggested_filename

logger = logging.getLogger(__name__)

RESPONSE_IDENT = "response1"
SCORE_VARNAME = "SCORE"

# question_type metadata values understood by Canvas
QTI_TYPE_NAMES: dict[QuestionType, str] = {
    QuestionType.MULTIPLE_CHOICE: "multiple_choice_question",
    QuestionType.MULTIPLE_ANSWER: "multiple_answers_question",
    QuestionType.TRUE_FALSE: "true_false_question",
    QuestionType.ESSAY: "essay_question",
    QuestionType.FILL_IN_BLANK: "short_answer_question",
}

TRUE_LABEL = "true"
FALSE_LABEL = "false"


@dataclass
class _ExportState:
    """Per-call accumulator; a fresh one is created for every export."""

    quiz_id: str
    registry: IdentifierRegistry
    items: list[ET.Element] = field(default_factory=list)
    warnings: list[BatchWarning] = field(default_factory=list)


@dataclass(frozen=True)
class _Scoring:
    points_possible: float
    max_score: float


def encode(
    questions: Sequence[Question],
    metadata: QuizMetadata | None = None,
) -> EncodeResult:
    """Export questions as a zipped QTI package.

    Args:
        questions: Questions in the order they should appear.
        metadata: Quiz title and description.

    Returns:
        EncodeResult with the archive bytes and any per-item warnings.

    Raises:
        EmptySelectionError: If `questions` is empty or no item could be
            generated.
        ArchiveIoError: If the zip could not be written.
    """
    settings = get_settings()
    metadata = metadata or QuizMetadata(title=settings.default_quiz_title)

    if not questions:
        raise EmptySelectionError("No questions selected for export")

    registry = IdentifierRegistry()
    state = _ExportState(quiz_id=registry.new(QUIZ_PREFIX), registry=registry)
    scoring = _Scoring(points_possible=settings.points_possible, max_score=settings.max_score)
    logger.info(f"Exporting {len(questions)} questions as {state.quiz_id} (\"{metadata.title}\")")

    for position, question in enumerate(questions, start=1):
        logger.debug(f"Processing question {position}/{len(questions)} ({question.type})")
        try:
            state.items.append(build_item(question, state.registry, scoring))
        except UnsupportedQuestionTypeError as e:
            logger.warning(f"Skipping question {question.id}: {e}")
            state.warnings.append(
                BatchWarning(
                    code=WarningCode.UNSUPPORTED_QUESTION_TYPE,
                    message=str(e),
                    question_id=question.id,
                )
            )
        except Exception as e:
            logger.error(f"Error processing question {question.id}: {e}")
            state.warnings.append(
                BatchWarning(
                    code=WarningCode.ITEM_GENERATION_FAILED,
                    message=str(e),
                    question_id=question.id,
                )
            )

    if not state.items:
        raise EmptySelectionError("None of the selected questions could be exported", state.warnings)

    documents = {
        MANIFEST_FILENAME: build_manifest(state.quiz_id, metadata),
        f"{state.quiz_id}/{META_FILENAME}": build_assessment_meta(
            state.quiz_id, metadata, scoring.points_possible * len(state.items)
        ),
        f"{state.quiz_id}/{ITEMS_FILENAME}": build_items_document(state.quiz_id, metadata, state.items),
    }
    archive = write_archive(documents)

    logger.info(
        f"Export complete: {len(state.items)} items, {len(state.warnings)} warnings, "
        f"{len(archive) / 1024:.2f}KB"
    )
    return EncodeResult(
        archive=archive,
        filename=suggested_filename(metadata.title, QTI_SUFFIX),
        quiz_identifier=state.quiz_id,
        item_count=len(state.items),
        warnings=state.warnings,
    )


async def encode_async(
    questions: Sequence[Question],
    metadata: QuizMetadata | None = None,
) -> EncodeResult:
    """Awaitable :func:`encode`; compression runs in a worker thread."""
    return await asyncio.to_thread(encode, questions, metadata)


# -----------------------------------------------------------------------------
# Item construction
# -----------------------------------------------------------------------------


def build_item(
    question: Question,
    registry: IdentifierRegistry,
    scoring: _Scoring | None = None,
) -> ET.Element:
    """Build the ``<item>`` element for one question.

    Raises:
        UnsupportedQuestionTypeError: If the question type has no encoding.
    """
    if scoring is None:
        settings = get_settings()
        scoring = _Scoring(points_possible=settings.points_possible, max_score=settings.max_score)

    qtype = question.type
    type_name = QTI_TYPE_NAMES.get(qtype)
    if type_name is None:
        raise UnsupportedQuestionTypeError(f"Unsupported question type: {qtype!r}")

    item_id = registry.new(QUESTION_PREFIX)

    if qtype == QuestionType.MULTIPLE_CHOICE:
        choices = [(registry.new(ANSWER_PREFIX), o) for o in question.options]
        conditions = _multiple_choice_conditions(item_id, choices, scoring)
    elif qtype == QuestionType.MULTIPLE_ANSWER:
        choices = [(registry.new(ANSWER_PREFIX), o) for o in question.options]
        conditions = _multiple_answer_conditions(item_id, choices, scoring)
    elif qtype == QuestionType.TRUE_FALSE:
        choices = [
            (registry.new(ANSWER_PREFIX), Option(text=TRUE_LABEL, is_correct=question.is_true is True)),
            (registry.new(ANSWER_PREFIX), Option(text=FALSE_LABEL, is_correct=question.is_true is not True)),
        ]
        conditions = _multiple_choice_conditions(item_id, choices, scoring)
    elif qtype == QuestionType.ESSAY:
        choices = None
        conditions = [ResponseCondition(Otherwise())]
    elif qtype == QuestionType.FILL_IN_BLANK:
        choices = None
        conditions = _fill_in_blank_conditions(item_id, question, scoring)
    else:
        raise UnsupportedQuestionTypeError(f"Unsupported question type: {qtype!r}")

    item = ET.Element("item", {"ident": item_id, "title": "Question"})
    _item_metadata(item, item_id, type_name, choices, scoring)

    presentation = ET.SubElement(item, "presentation")
    _material(presentation, question.text)
    if choices is not None:
        cardinality = "Multiple" if qtype == QuestionType.MULTIPLE_ANSWER else "Single"
        response = ET.SubElement(presentation, "response_lid", {"ident": RESPONSE_IDENT, "rcardinality": cardinality})
        render = ET.SubElement(response, "render_choice")
        for answer_id, option in choices:
            label = ET.SubElement(render, "response_label", {"ident": answer_id})
            _material(label, option.text)
    else:
        response = ET.SubElement(presentation, "response_str", {"ident": RESPONSE_IDENT, "rcardinality": "Single"})
        render = ET.SubElement(response, "render_fib")
        ET.SubElement(render, "response_label", {"ident": "answer1", "rshuffle": "No"})

    resprocessing = ET.SubElement(item, "resprocessing")
    outcomes = ET.SubElement(resprocessing, "outcomes")
    ET.SubElement(
        outcomes,
        "decvar",
        {
            "maxvalue": _number(scoring.max_score),
            "minvalue": "0",
            "varname": SCORE_VARNAME,
            "vartype": "Decimal",
        },
    )
    for rc in conditions:
        resprocessing.append(respcondition_element(rc, SCORE_VARNAME))

    return item


def _multiple_choice_conditions(
    item_id: str,
    choices: list[tuple[str, Option]],
    scoring: _Scoring,
) -> list[ResponseCondition]:
    correct = [answer_id for answer_id, option in choices if option.is_correct]
    if not correct:
        logger.warning(f"Multiple choice question has no correct answer, ID: {item_id}")
        return []
    return [ResponseCondition(Equality(RESPONSE_IDENT, correct[0]), score=scoring.max_score)]


def _multiple_answer_conditions(
    item_id: str,
    choices: list[tuple[str, Option]],
    scoring: _Scoring,
) -> list[ResponseCondition]:
    correct = [answer_id for answer_id, option in choices if option.is_correct]
    if not correct:
        logger.warning(f"Multiple answer question has no correct answers, ID: {item_id}")
        return []
    # Selecting an incorrect option must fail the whole conjunction.
    children = [Equality(RESPONSE_IDENT, answer_id) for answer_id in correct]
    children += [
        Negation(Equality(RESPONSE_IDENT, answer_id))
        for answer_id, option in choices
        if not option.is_correct
    ]
    return [ResponseCondition(Conjunction(tuple(children)), score=scoring.max_score)]


def _fill_in_blank_conditions(
    item_id: str,
    question: Question,
    scoring: _Scoring,
) -> list[ResponseCondition]:
    answers = [answer for answer in question.correct_answers if answer and answer.strip()]
    if not answers:
        logger.warning(f"Fill in blank question has no correct answers, ID: {item_id}")
    # One condition per accepted answer: the format has no OR at this level.
    return [
        ResponseCondition(Equality(RESPONSE_IDENT, answer, case_sensitive=False), score=scoring.max_score)
        for answer in answers
    ]


def _item_metadata(
    item: ET.Element,
    item_id: str,
    type_name: str,
    choices: list[tuple[str, Option]] | None,
    scoring: _Scoring,
) -> None:
    itemmetadata = ET.SubElement(item, "itemmetadata")
    qtimetadata = ET.SubElement(itemmetadata, "qtimetadata")
    fields = [
        ("question_type", type_name),
        ("points_possible", _number(scoring.points_possible)),
    ]
    if choices is not None:
        fields.append(("original_answer_ids", ",".join(answer_id for answer_id, _ in choices)))
    fields.append(("assessment_question_identifierref", f"question_ref_{item_id[len(QUESTION_PREFIX):]}"))

    for label, entry in fields:
        field_el = ET.SubElement(qtimetadata, "qtimetadatafield")
        ET.SubElement(field_el, "fieldlabel").text = label
        ET.SubElement(field_el, "fieldentry").text = entry


def _material(parent: ET.Element, text: str) -> None:
    material = ET.SubElement(parent, "material")
    mattext = ET.SubElement(material, "mattext", {"texttype": "text/html"})
    mattext.text = html_paragraph(text)


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
