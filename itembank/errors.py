"""Batch-level failures.

Row- and item-level faults never raise; they are reported as
:class:`~itembank.models.BatchWarning` records on the stage result. The
exceptions below abort a whole batch and carry whatever warnings were
collected before the failure so partial progress stays observable.
"""

from __future__ import annotations

from itembank.models import BatchWarning


class ItemBankError(Exception):
    """Base class for batch-level failures."""

    def __init__(self, message: str, warnings: list[BatchWarning] | None = None):
        super().__init__(message)
        self.warnings: list[BatchWarning] = list(warnings or [])


class EmptySelectionError(ItemBankError):
    """The encoder was given no questions, or none of them could be encoded."""


class MissingItemsDocumentError(ItemBankError):
    """No QTI items document could be located inside the archive."""


class MalformedXmlError(ItemBankError):
    """A required XML document inside the archive could not be parsed."""


class ArchiveIoError(ItemBankError):
    """The archive could not be read or written."""


class UnsupportedQuestionTypeError(ItemBankError):
    """A single item has a type outside the supported set.

    Raised per item and converted into a warning by the encoder/decoder; it
    never aborts a batch.
    """


class SpreadsheetError(ItemBankError):
    """The spreadsheet file could not be read."""
