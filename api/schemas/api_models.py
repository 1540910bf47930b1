"""Pydantic models for API responses.

These models define the shape of data returned by the API endpoints.
File-producing endpoints return raw bytes; their counts travel in headers.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from itembank.models import BatchWarning, Question, QuizMetadata


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str
    version: str


class DecodeResponse(BaseModel):
    """Response for POST /api/decode."""

    metadata: QuizMetadata
    questions: list[Question]
    warnings: list[BatchWarning] = Field(default_factory=list)
    question_count: int = Field(description="Number of questions decoded")


class ErrorDetail(BaseModel):
    """Body of a 4xx response raised for a failed batch."""

    message: str
    warnings: list[BatchWarning] = Field(default_factory=list)
