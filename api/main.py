"""FastAPI application entry point.

Run with:
    uvicorn api.main:app --reload --port 8000
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import convert
from api.schemas.api_models import HealthResponse
from itembank.config import get_settings
from itembank.utils.logging_config import setup_logging

settings = get_settings()
setup_logging(verbose=settings.debug)

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Convert quiz spreadsheets to QTI packages and QTI packages to printable exams.",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(convert.router, prefix="/api", tags=["Convert"])


@app.get("/api/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version=settings.api_version)
