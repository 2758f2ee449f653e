import asyncio
import os
import shutil
import uuid
from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import JSONResponse

from constants import PDF_CONTENT_TYPE
from logging_config import get_logger
from schemas.rooms import ErrorResponse, PdfInfo, UploadResponse

logger = get_logger(__name__)

uploads_router = APIRouter(tags=["uploads"])

PDF_REQUIRED = "A PDF file is required."
PDF_ONLY = "Only PDF files can be uploaded."


def storage_name(original_name: str) -> str:
    """Unique on-disk name that keeps the client's extension."""
    _, ext = os.path.splitext(original_name)
    return f"{uuid.uuid4().hex}{ext}"


def _write_file(source, destination: str):
    with open(destination, "wb") as out:
        shutil.copyfileobj(source, out)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump(by_alias=True))


@uploads_router.post("/upload", response_model=UploadResponse)
async def upload_pdf(request: Request, pdf: Optional[UploadFile] = File(None)):
    """Store an uploaded PDF and return the token the host sends in ``upload_pdf``."""
    client_host = request.client.host if request.client else "unknown"
    if pdf is None or not pdf.filename:
        logger.warning(f"Upload rejected from {client_host}: no file")
        return _bad_request(PDF_REQUIRED)
    if pdf.content_type != PDF_CONTENT_TYPE:
        logger.warning(f"Upload rejected from {client_host}: {pdf.filename} has content type {pdf.content_type}")
        return _bad_request(PDF_ONLY)

    upload_dir = request.app.state.upload_dir
    filename = storage_name(pdf.filename)
    destination = os.path.join(upload_dir, filename)

    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, _write_file, pdf.file, destination)
    finally:
        await pdf.close()
    logger.info(f"Stored upload {pdf.filename} from {client_host} as {filename}")

    return UploadResponse(pdf=PdfInfo(filename=filename, original_name=pdf.filename))
