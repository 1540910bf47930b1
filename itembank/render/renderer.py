"""Paginated Renderer - lays questions out on fixed-size PDF pages.

Each question becomes a block of fragments (prompt, options, answer lines)
whose heights come from wrapped line counts. The page-break check happens
before any fragment is drawn: a block that fits on one page is never split,
and only a block taller than a whole page breaks between fragments.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date

import fitz  # type: ignore
from pydantic import BaseModel, Field, field_validator

from itembank.builder import UNRESOLVED_ANSWER_PLACEHOLDER
from itembank.config import get_settings
from itembank.errors import EmptySelectionError
from itembank.models import (
    BatchWarning,
    Question,
    QuestionType,
    RenderResult,
    WarningCode,
)
from itembank.render.layout import (
    ANSWER_BLUE,
    BOLD_FONT,
    PAPER_SIZES,
    REGULAR_FONT,
    RULE_GREY,
    PageCursor,
    wrap_text,
)
from itembank.utils.filenames import ANSWER_KEY_SUFFIX, EXAM_SUFFIX, suggested_filename

logger = logging.getLogger(__name__)

ANSWER_KEY_TITLE_SUFFIX = " - Answer Key"

QUESTION_FONT_SIZE = 12
OPTION_FONT_SIZE = 10
TITLE_FONT_SIZE = 16
HEADER_FONT_SIZE = 10

LINE_HEIGHT = 5.0
TEXT_GAP = 5.0
OPTION_GAP = 3.0
OPTION_INDENT = 10.0
QUESTION_GAP = 5.0
ANSWER_LINE_HEIGHT = 8.0
ESSAY_LINE_SPACING = 8.0
FIB_SPACE = 8.0

CIRCLE_RADIUS = 1.5
CIRCLE_FILL_RADIUS = 0.8
SQUARE_SIZE = 3.0
TF_TOKEN_WIDTH = 12.0
STUDENT_COLUMN_WIDTH = 60.0
STUDENT_ROW_GAP = 8.0


class RenderOptions(BaseModel):
    """Options for one printed document."""

    title: str = Field(default_factory=lambda: get_settings().default_quiz_title)
    description: str = ""
    include_answers: bool = False
    include_images: bool = False
    institution: str = Field(default_factory=lambda: get_settings().institution_name)
    college: str = ""
    student_block: bool = True
    paper_size: str = Field(default_factory=lambda: get_settings().default_paper_size)
    page_numbering: bool = True
    margin_mm: float = Field(default_factory=lambda: get_settings().margin_mm, gt=0)

    @field_validator("paper_size")
    @classmethod
    def validate_paper_size(cls, v: str) -> str:
        key = v.strip().lower()
        if key not in PAPER_SIZES:
            msg = f"paper_size must be one of {sorted(PAPER_SIZES)}, got '{v}'"
            raise ValueError(msg)
        return key


@dataclass
class _Fragment:
    """A drawable piece of a question block; `draw` starts at cursor.y."""

    height: float
    draw: Callable[[PageCursor], None]


def render(questions: Sequence[Question], options: RenderOptions | None = None) -> RenderResult:
    """Render questions as a printable PDF.

    Args:
        questions: Questions in print order.
        options: Layout and content options.

    Returns:
        RenderResult with the PDF bytes, the page count and the page on
        which each question number was printed.

    Raises:
        EmptySelectionError: If there is nothing to print.
    """
    options = options or RenderOptions()
    if not questions:
        raise EmptySelectionError("No questions to print")
    if options.include_images:
        logger.info("Image rendering requested; questions carry no image content")

    settings = get_settings()
    warnings: list[BatchWarning] = []
    question_pages: list[int] = []

    doc = fitz.open()
    try:
        cursor = PageCursor(doc, options.paper_size, options.margin_mm, options.page_numbering)
        _draw_header(cursor, options, len(questions))

        for number, question in enumerate(questions, start=1):
            fragments = _question_fragments(cursor, number, question, options, settings.essay_line_count, warnings)
            question_pages.append(_place_block(cursor, fragments))
            cursor.y += QUESTION_GAP

        page_count = cursor.page_number
        doc.set_metadata(_document_metadata(options))
        document = cursor.finish()
    finally:
        doc.close()

    suffix = ANSWER_KEY_SUFFIX if options.include_answers else EXAM_SUFFIX
    logger.info(f"Rendered {len(questions)} questions on {page_count} pages ({options.paper_size})")
    return RenderResult(
        document=document,
        filename=suggested_filename(options.title, suffix),
        page_count=page_count,
        question_pages=question_pages,
        warnings=warnings,
    )


def render_answer_key(questions: Sequence[Question], options: RenderOptions | None = None) -> RenderResult:
    """Render the answer key variant: answers shown, title suffixed."""
    options = options or RenderOptions()
    key_options = options.model_copy(
        update={"include_answers": True, "title": f"{options.title}{ANSWER_KEY_TITLE_SUFFIX}"}
    )
    result = render(questions, key_options)
    result.filename = suggested_filename(options.title, ANSWER_KEY_SUFFIX)
    return result


def render_exam_set(
    questions: Sequence[Question],
    options: RenderOptions | None = None,
) -> tuple[RenderResult, RenderResult]:
    """Render (exam, answer key) with the same layout options."""
    options = options or RenderOptions()
    exam = render(questions, options.model_copy(update={"include_answers": False}))
    return exam, render_answer_key(questions, options)


# -----------------------------------------------------------------------------
# Layout
# -----------------------------------------------------------------------------


def _place_block(cursor: PageCursor, fragments: list[_Fragment]) -> int:
    """Draw a question block and return the page its first fragment landed on."""
    total = sum(f.height for f in fragments)
    keep_together = total <= cursor.page_capacity
    if keep_together:
        cursor.ensure(total)

    first_page = None
    for fragment in fragments:
        if not keep_together:
            cursor.ensure(fragment.height)
        if first_page is None:
            first_page = cursor.page_number
        fragment.draw(cursor)
        cursor.y += fragment.height
    return first_page or cursor.page_number


def _document_metadata(options: RenderOptions) -> dict[str, str]:
    """PDF document properties for the rendered file."""
    return {
        "title": options.title,
        "subject": "Answer Key" if options.include_answers else "Exam",
        "author": options.institution or options.college,
        "creator": "itembank",
        "producer": "itembank",
    }


def _centered_lines(cursor: PageCursor, text: str, fontsize: float, fontname: str, line_height: float) -> None:
    for line in wrap_text(text, cursor.content_width, fontsize, fontname):
        cursor.centered_text(cursor.y, line, fontsize, fontname)
        cursor.y += line_height


def _draw_header(cursor: PageCursor, options: RenderOptions, question_count: int) -> None:
    if options.institution:
        _centered_lines(cursor, options.institution, TITLE_FONT_SIZE, BOLD_FONT, 8)
    if options.college:
        _centered_lines(cursor, options.college, 14, REGULAR_FONT, 7)
    if options.institution or options.college:
        cursor.y += 4

    _centered_lines(cursor, options.title, TITLE_FONT_SIZE, BOLD_FONT, 8)
    cursor.y += 2

    if options.description:
        for line in wrap_text(options.description, cursor.content_width, 11):
            cursor.ensure(6)
            cursor.text(cursor.margin, cursor.y, line, 11)
            cursor.y += 6
        cursor.y += 2

    today = f"Date: {date.today().strftime('%B %d, %Y')}"
    if options.student_block:
        right = cursor.width - cursor.margin - STUDENT_COLUMN_WIDTH
        cursor.text(cursor.margin, cursor.y, "Name:", HEADER_FONT_SIZE)
        cursor.text(right, cursor.y, today, HEADER_FONT_SIZE)
        cursor.y += STUDENT_ROW_GAP
        cursor.text(cursor.margin, cursor.y, "Section:", HEADER_FONT_SIZE)
        cursor.text(right, cursor.y, "Student Number:", HEADER_FONT_SIZE)
    else:
        cursor.text(cursor.margin, cursor.y, today, HEADER_FONT_SIZE)
    cursor.y += STUDENT_ROW_GAP
    cursor.text(cursor.margin, cursor.y, f"Number of Questions: {question_count}", HEADER_FONT_SIZE)
    cursor.y += 5
    cursor.line(cursor.margin, cursor.y, cursor.width - cursor.margin, cursor.y)
    cursor.y += 10


def option_label(index: int) -> str:
    """Letter for the option at `index`: A..Z, then AA, AB and so on."""
    label = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        label = chr(65 + rem) + label
    return label


def _question_fragments(
    cursor: PageCursor,
    number: int,
    question: Question,
    options: RenderOptions,
    essay_lines: int,
    warnings: list[BatchWarning],
) -> list[_Fragment]:
    qtype = question.type
    fragments = [_prompt_fragment(cursor, number, question)]

    if qtype in (QuestionType.MULTIPLE_CHOICE, QuestionType.MULTIPLE_ANSWER):
        for index, option in enumerate(question.options):
            text = f"{option_label(index)}. {option.text}"
            fragments.append(_option_fragment(cursor, qtype, text, option.is_correct, options.include_answers))
    elif qtype == QuestionType.TRUE_FALSE:
        if options.include_answers:
            fragments.append(_answer_fragment("Answer: True" if question.is_true else "Answer: False"))
    elif qtype == QuestionType.ESSAY:
        fragments.append(_essay_fragment(essay_lines))
    elif qtype == QuestionType.FILL_IN_BLANK:
        fragments.append(_Fragment(FIB_SPACE, lambda c: None))
        if options.include_answers:
            if not question.correct_answers:
                warnings.append(
                    BatchWarning(
                        code=WarningCode.MISSING_ANSWERS,
                        message="No accepted answer to print",
                        question_id=question.id,
                    )
                )
            answer = question.correct_answers[0] if question.correct_answers else UNRESOLVED_ANSWER_PLACEHOLDER
            fragments.append(_answer_fragment(f"Answer: {answer}"))
    else:
        raise ValueError(f"Unhandled question type: {qtype!r}")

    return fragments


def _prompt_fragment(cursor: PageCursor, number: int, question: Question) -> _Fragment:
    lines = wrap_text(f"{number}. {question.text}", cursor.content_width, QUESTION_FONT_SIZE)
    true_false = question.type == QuestionType.TRUE_FALSE

    def draw(c: PageCursor) -> None:
        if true_false:
            # Answer line sits in the left margin, before the number.
            x = max(c.margin - TF_TOKEN_WIDTH - 2, 2.0)
            c.line(x, c.y + 0.5, x + TF_TOKEN_WIDTH, c.y + 0.5)
        for i, line in enumerate(lines):
            c.text(c.margin, c.y + i * LINE_HEIGHT, line, QUESTION_FONT_SIZE)

    return _Fragment(len(lines) * LINE_HEIGHT + TEXT_GAP, draw)


def _option_fragment(
    cursor: PageCursor,
    qtype: QuestionType,
    text: str,
    is_correct: bool,
    include_answers: bool,
) -> _Fragment:
    lines = wrap_text(text, cursor.content_width - OPTION_INDENT, OPTION_FONT_SIZE)
    marked = include_answers and is_correct

    def draw(c: PageCursor) -> None:
        if qtype == QuestionType.MULTIPLE_CHOICE:
            cx, cy = c.margin + 4, c.y - 1.2
            c.circle(cx, cy, CIRCLE_RADIUS)
            if marked:
                c.circle(cx, cy, CIRCLE_FILL_RADIUS, filled=True)
        else:
            c.square(c.margin + 2.5, c.y - SQUARE_SIZE + 0.3, SQUARE_SIZE, crossed=marked)
        for i, line in enumerate(lines):
            c.text(c.margin + OPTION_INDENT, c.y + i * LINE_HEIGHT, line, OPTION_FONT_SIZE)

    return _Fragment(len(lines) * LINE_HEIGHT + OPTION_GAP, draw)


def _answer_fragment(text: str) -> _Fragment:
    def draw(c: PageCursor) -> None:
        c.text(c.margin + OPTION_INDENT, c.y, text, OPTION_FONT_SIZE, color=ANSWER_BLUE)

    return _Fragment(ANSWER_LINE_HEIGHT, draw)


def _essay_fragment(line_count: int) -> _Fragment:
    def draw(c: PageCursor) -> None:
        for i in range(line_count):
            y = c.y + i * ESSAY_LINE_SPACING
            c.line(c.margin, y, c.width - c.margin, y, color=RULE_GREY)

    return _Fragment(line_count * ESSAY_LINE_SPACING, draw)
