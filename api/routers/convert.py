"""Conversion router - spreadsheet, QTI and PDF endpoints.

Endpoints:
    POST /api/convert   spreadsheet upload -> QTI zip
    POST /api/decode    QTI zip upload -> questions as JSON
    POST /api/render    QTI zip upload -> exam or answer key PDF
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile
from pydantic import ValidationError

from api.schemas.api_models import DecodeResponse, ErrorDetail
from itembank.config import get_settings
from itembank.errors import EmptySelectionError, ItemBankError
from itembank.models import QuizMetadata
from itembank.pipeline import import_spreadsheet, options_for_quiz, print_exam
from itembank.qti import decode_async, encode_async
from itembank.render import RenderOptions

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_upload(file: UploadFile) -> bytes:
    """Read an upload, enforcing the configured size limit."""
    limit = get_settings().max_upload_bytes
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail=f"Uploaded file '{file.filename}' is empty")
    if len(content) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"Uploaded file exceeds {limit // (1024 * 1024)}MB limit",
        )
    return content


def _batch_error(e: ItemBankError) -> HTTPException:
    status = 422 if isinstance(e, EmptySelectionError) else 400
    logger.warning(f"Request failed ({status}): {e}")
    detail = ErrorDetail(message=str(e), warnings=e.warnings)
    return HTTPException(status_code=status, detail=detail.model_dump(mode="json"))


def _attachment(filename: str) -> str:
    return f'attachment; filename="{filename}"'


@router.post("/convert")
async def convert_spreadsheet(
    sheet: UploadFile = File(...),
    title: str | None = Form(None),
    description: str = Form(""),
) -> Response:
    """Convert an uploaded CSV/XLSX sheet into a QTI 1.2 zip."""
    content = await _read_upload(sheet)
    metadata = QuizMetadata(title=title or get_settings().default_quiz_title, description=description)

    try:
        built = await asyncio.to_thread(import_spreadsheet, content, sheet.filename)
        encoded = await encode_async(built.questions, metadata)
    except ItemBankError as e:
        raise _batch_error(e) from e

    return Response(
        content=encoded.archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": _attachment(encoded.filename),
            "X-Item-Count": str(encoded.item_count),
            "X-Warning-Count": str(len(built.warnings) + len(encoded.warnings)),
        },
    )


@router.post("/decode", response_model=DecodeResponse)
async def decode_archive(archive: UploadFile = File(...)) -> DecodeResponse:
    """Decode an uploaded QTI zip into questions and quiz metadata."""
    content = await _read_upload(archive)
    try:
        decoded = await decode_async(content)
    except ItemBankError as e:
        raise _batch_error(e) from e

    return DecodeResponse(
        metadata=decoded.metadata,
        questions=decoded.questions,
        warnings=decoded.warnings,
        question_count=len(decoded.questions),
    )


@router.post("/render")
async def render_archive(
    archive: UploadFile = File(...),
    title: str | None = Form(None),
    paper_size: str | None = Form(None),
    answer_key: bool = Form(False),
    page_numbering: bool = Form(True),
    include_images: bool = Form(False),
    margin_mm: float | None = Form(None),
    institution: str | None = Form(None),
    college: str = Form(""),
) -> Response:
    """Render an uploaded QTI zip as an exam PDF (or its answer key)."""
    fields: dict = {"page_numbering": page_numbering, "include_images": include_images}
    fields["college"] = college
    if institution is not None:
        fields["institution"] = institution
    if title:
        fields["title"] = title
    if paper_size:
        fields["paper_size"] = paper_size
    if margin_mm is not None:
        fields["margin_mm"] = margin_mm
    try:
        options = RenderOptions(**fields)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid render options: {e.errors()[0]['msg']}") from e

    content = await _read_upload(archive)
    try:
        decoded = await decode_async(content)
        options = options_for_quiz(decoded.metadata, options)
        result = await asyncio.to_thread(print_exam, decoded.questions, options, answer_key)
    except ItemBankError as e:
        raise _batch_error(e) from e

    return Response(
        content=result.document,
        media_type="application/pdf",
        headers={
            "Content-Disposition": _attachment(result.filename),
            "X-Page-Count": str(result.page_count),
        },
    )
