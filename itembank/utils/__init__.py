"""Shared utilities package for the itembank application."""

from itembank.utils.filenames import (
    ANSWER_KEY_SUFFIX,
    EXAM_SUFFIX,
    QTI_SUFFIX,
    sanitize_title,
    suggested_filename,
)
from itembank.utils.logging_config import setup_logging

__all__ = [
    # Logging utilities
    "setup_logging",
    # Filename utilities
    "sanitize_title",
    "suggested_filename",
    "QTI_SUFFIX",
    "EXAM_SUFFIX",
    "ANSWER_KEY_SUFFIX",
]
