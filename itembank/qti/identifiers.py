"""Identifier generation for exported QTI packages.

Identifiers are fixed-length hexadecimal strings. They only need to be
unique within one archive, which the per-export registry guarantees.
"""

from __future__ import annotations

import secrets

ID_HEX_LENGTH = 8

QUIZ_PREFIX = "qti_export_"
QUESTION_PREFIX = "question_"
ANSWER_PREFIX = "answer_"


def random_hex(length: int = ID_HEX_LENGTH) -> str:
    """Return `length` random lowercase hex characters."""
    return secrets.token_hex((length + 1) // 2)[:length]


class IdentifierRegistry:
    """Hands out prefixed identifiers that never repeat within one export."""

    def __init__(self) -> None:
        self._issued: set[str] = set()

    def new(self, prefix: str) -> str:
        while True:
            candidate = f"{prefix}{random_hex()}"
            if candidate not in self._issued:
                self._issued.add(candidate)
                return candidate

    def __len__(self) -> int:
        return len(self._issued)
