"""
FairReview Review API
=====================
Runs a fair-competition review over submitted document text.
Optionally records each run in the review history.
"""

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import (
    get_history,
    get_review_service,
    require_api_token,
    review_rate_limit,
)
from core.history import ReviewHistory
from core.review_engine import ReviewResult
from core.review_service import InputError, ReviewService
from schemas import ConnectionStatusResponse, ErrorResponse, ReviewRequest, ReviewResultSchema

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/review", tags=["Review"])


def convert_result_to_schema(result: ReviewResult, record_id: str | None = None) -> ReviewResultSchema:
    """Convert an internal review result to the API schema."""
    return ReviewResultSchema(**result.to_dict(), record_id=record_id)


def record_review(
    history: ReviewHistory,
    file_name: str,
    file_size: int,
    result: ReviewResult
) -> str | None:
    """Append a run to the history; a failed write never fails the review."""
    try:
        return history.save(file_name, file_size, result)
    except Exception as e:
        logger.error(f"Failed to record review of {file_name}: {e}")
        return None


@router.post(
    "",
    response_model=ReviewResultSchema,
    responses={
        400: {"model": ErrorResponse, "description": "Document text cannot be reviewed"},
        401: {"model": ErrorResponse, "description": "Invalid API token"},
        413: {"model": ErrorResponse, "description": "Document text too long"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"}
    },
    dependencies=[Depends(require_api_token), Depends(review_rate_limit)],
    summary="Review document text",
    description="""
    Check policy text against the fair-competition rules.

    Uses the external reviewer when configured and falls back to the
    local rule engine whenever it fails. When `file_name` is supplied the
    run is added to the review history.
    """
)
async def review_document(
    body: ReviewRequest,
    service: Annotated[ReviewService, Depends(get_review_service)],
    history: Annotated[ReviewHistory, Depends(get_history)]
) -> ReviewResultSchema:
    """Review a document and return the aggregate result."""
    start_time = time.time()

    try:
        result = await service.review(body.document_content)
    except InputError as e:
        logger.info(f"Rejected review input ({e.reason})")
        status_code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE if e.reason == "too_long"
            else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(
            status_code=status_code,
            detail={
                "error": "InputError",
                "message": e.message,
                "details": {
                    "reason": e.reason,
                    "result": e.to_review_result().to_dict()
                }
            }
        )

    record_id = None
    if body.file_name:
        record_id = record_review(history, body.file_name, body.file_size, result)

    logger.info(
        f"Review finished in {time.time() - start_time:.2f}s: "
        f"{result.total_issues} issue(s), mode={result.mode.value}"
    )

    return convert_result_to_schema(result, record_id)


@router.get(
    "/status",
    response_model=ConnectionStatusResponse,
    summary="External reviewer status",
    description="Check whether the external reviewer is configured and reachable."
)
async def review_status(
    service: Annotated[ReviewService, Depends(get_review_service)]
) -> ConnectionStatusResponse:
    connection = await service.check_connection()
    return ConnectionStatusResponse(**connection, mode=service.mode)
