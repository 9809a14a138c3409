"""
FairReview Documents API
========================
Handles document upload, storage and text extraction.
"""

import logging
import uuid
from pathlib import Path
from typing import Annotated

import aiofiles
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status

from api.dependencies import get_document_parser, parse_rate_limit, require_api_token
from core.document_parser import DocumentParseError, DocumentParser
from schemas import DocumentMetadataSchema, ErrorResponse, ParseResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/documents", tags=["Documents"])

UPLOAD_CHUNK_BYTES = 1024 * 1024


def generate_upload_id() -> str:
    """Generate a unique upload ID."""
    return f"upload-{uuid.uuid4().hex[:12]}"


async def save_file(file: UploadFile, upload_dir: Path, max_bytes: int) -> tuple[Path, int]:
    """
    Stream an upload to disk.

    Returns:
        Tuple of (file_path, file_size_bytes)

    Raises:
        HTTPException: 413 if the file exceeds ``max_bytes``
    """
    upload_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(file.filename or "").suffix.lower()
    file_path = upload_dir / f"{generate_upload_id()}{suffix}"

    file_size = 0
    async with aiofiles.open(file_path, "wb") as out_file:
        while chunk := await file.read(UPLOAD_CHUNK_BYTES):
            file_size += len(chunk)

            if file_size > max_bytes:
                await out_file.close()
                file_path.unlink(missing_ok=True)
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail={
                        "error": "FileTooLarge",
                        "message": f"文件大小超过限制（最大 {max_bytes // (1024 * 1024)}MB）",
                        "details": {
                            "max_size_bytes": max_bytes,
                            "received_bytes": file_size
                        }
                    }
                )

            await out_file.write(chunk)

    return file_path, file_size


@router.post(
    "/parse",
    response_model=ParseResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported or unreadable document"},
        401: {"model": ErrorResponse, "description": "Invalid API token"},
        413: {"model": ErrorResponse, "description": "File too large"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"}
    },
    dependencies=[Depends(require_api_token), Depends(parse_rate_limit)],
    summary="Extract document text",
    description="""
    Upload a policy document and get its cleaned plain text.

    **Accepted file types:** .docx, .pdf (with a text layer), .txt
    **Maximum file size:** 10MB
    """
)
async def parse_document(
    request: Request,
    file: Annotated[UploadFile, File(description="Policy document to parse")],
    parser: Annotated[DocumentParser, Depends(get_document_parser)]
) -> ParseResponse:
    """Store the upload, extract its text and remove the stored copy."""
    settings = request.app.state.settings
    file_name = file.filename or "unknown"
    logger.info(f"Received parse request: {file_name}")

    file_path, file_size = await save_file(file, settings.upload_dir, settings.max_file_size_bytes)

    try:
        parsed = await parser.parse(file_path, file_name)
    except DocumentParseError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "DocumentParseError",
                "message": str(e),
                "details": {"file_name": file_name, "file_size_bytes": file_size}
            }
        )
    finally:
        file_path.unlink(missing_ok=True)

    logger.info(f"Parsed {file_name}: {parsed.word_count} characters")

    return ParseResponse(
        content=parsed.content,
        metadata=DocumentMetadataSchema(
            title=parsed.title,
            word_count=parsed.word_count,
            extracted_at=parsed.extracted_at
        )
    )
