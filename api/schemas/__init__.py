"""API schemas package - Pydantic models for request/response."""

from api.schemas.api_models import DecodeResponse, ErrorDetail, HealthResponse

__all__ = [
    "DecodeResponse",
    "ErrorDetail",
    "HealthResponse",
]
