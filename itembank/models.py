"""Data models for the item bank conversion pipeline.

Covers the canonical question entity shared by every stage (row builder,
QTI encoder/decoder, print renderer), quiz-level metadata, the structured
warning record, and the per-stage result objects.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class QuestionType(str, Enum):
    """Closed set of supported question types.

    Values are the short codes used in spreadsheets (first cell or sheet
    name), so ``QuestionType("MC")`` parses a code directly.
    """

    MULTIPLE_CHOICE = "MC"
    MULTIPLE_ANSWER = "MA"
    TRUE_FALSE = "TF"
    ESSAY = "ESS"
    FILL_IN_BLANK = "FIB"

    @property
    def label(self) -> str:
        """Human readable name, e.g. ``Multiple Choice``."""
        return _TYPE_LABELS[self]

    @property
    def has_options(self) -> bool:
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.MULTIPLE_ANSWER)


_TYPE_LABELS: dict[QuestionType, str] = {
    QuestionType.MULTIPLE_CHOICE: "Multiple Choice",
    QuestionType.MULTIPLE_ANSWER: "Multiple Answer",
    QuestionType.TRUE_FALSE: "True/False",
    QuestionType.ESSAY: "Essay",
    QuestionType.FILL_IN_BLANK: "Fill in Blank",
}

TYPE_CODES: tuple[str, ...] = tuple(t.value for t in QuestionType)


class WarningCode(str, Enum):
    """Per-row and per-item fault codes that do not abort a batch."""

    INPUT_TOO_SHORT = "input_too_short"
    UNCLASSIFIABLE_ROW = "unclassifiable_row"
    UNSUPPORTED_QUESTION_TYPE = "unsupported_question_type"
    ITEM_GENERATION_FAILED = "item_generation_failed"
    AMBIGUOUS_CORRECTNESS = "ambiguous_correctness"
    MISSING_ANSWERS = "missing_answers"


# ---------------------------------------------------------------------------
# Canonical question
# ---------------------------------------------------------------------------


class Option(BaseModel):
    """One answer choice of a multiple choice / multiple answer question."""

    text: str
    is_correct: bool = False

    model_config = ConfigDict(frozen=True)


class Question(BaseModel):
    """Canonical, format-agnostic question.

    Attributes:
        id: Identifier unique within a batch. Assigned once at creation.
        type: The question type.
        text: Prompt as plain text.
        options: Ordered choices (MC/MA only).
        is_true: Correct value (TF only).
        correct_answers: Accepted literal answers, matched case-insensitively
            (FIB only).
        answers_unresolved: True when `correct_answers` holds a synthesized
            placeholder rather than author-supplied answers (FIB only).
    """

    id: str
    type: QuestionType
    text: str = ""
    options: list[Option] = Field(default_factory=list)
    is_true: bool | None = None
    correct_answers: list[str] = Field(default_factory=list)
    answers_unresolved: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def correct_indices(self) -> list[int]:
        """Indices of options marked correct, in option order."""
        return [i for i, option in enumerate(self.options) if option.is_correct]

    def content_fields(self) -> dict:
        """Fields that survive a QTI round trip (everything but the id)."""
        return {
            "type": self.type,
            "text": self.text,
            "options": [(o.text, o.is_correct) for o in self.options],
            "is_true": self.is_true,
            "correct_answers": list(self.correct_answers),
        }


class QuizMetadata(BaseModel):
    """Quiz-level fields attached once per export / decode cycle."""

    title: str = "Quiz"
    description: str = ""


class BatchWarning(BaseModel):
    """Structured record of a row or item that was dropped or adjusted."""

    code: WarningCode
    message: str
    row_index: int | None = None
    question_id: str | None = None


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------


class BuildResult(BaseModel):
    """Output of building questions from spreadsheet rows."""

    questions: list[Question] = Field(default_factory=list)
    warnings: list[BatchWarning] = Field(default_factory=list)
    skipped: int = 0

    def by_type(self, question_type: QuestionType) -> list[Question]:
        return [q for q in self.questions if q.type == question_type]


class EncodeResult(BaseModel):
    """Output of the QTI encoder."""

    archive: bytes
    filename: str
    quiz_identifier: str
    item_count: int
    warnings: list[BatchWarning] = Field(default_factory=list)


class DecodeResult(BaseModel):
    """Output of the QTI decoder."""

    questions: list[Question] = Field(default_factory=list)
    metadata: QuizMetadata = Field(default_factory=QuizMetadata)
    warnings: list[BatchWarning] = Field(default_factory=list)


class RenderResult(BaseModel):
    """Output of the print renderer.

    Attributes:
        document: PDF bytes.
        filename: Suggested download filename.
        page_count: Number of pages produced.
        question_pages: For each rendered question (in order), the 1-based
            page on which its number was printed.
    """

    document: bytes
    filename: str
    page_count: int
    question_pages: list[int] = Field(default_factory=list)
    warnings: list[BatchWarning] = Field(default_factory=list)
