"""Item bank: spreadsheet rows to QTI 1.2 packages and printable exams."""

from itembank.models import (
    BatchWarning,
    BuildResult,
    DecodeResult,
    EncodeResult,
    Option,
    Question,
    QuestionType,
    QuizMetadata,
    RenderResult,
    WarningCode,
)

__version__ = "0.1.0"

__all__ = [
    "BatchWarning",
    "BuildResult",
    "DecodeResult",
    "EncodeResult",
    "Option",
    "Question",
    "QuestionType",
    "QuizMetadata",
    "RenderResult",
    "WarningCode",
]
