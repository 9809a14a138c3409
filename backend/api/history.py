"""
FairReview History API
======================
Access to the log of completed reviews.
"""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Response, status

from api.dependencies import get_history
from core.history import ReviewHistory
from schemas import (
    ErrorResponse,
    HistoryListResponse,
    HistoryRecordSchema,
    HistoryStatisticsSchema,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/history", tags=["History"])


def record_not_found(record_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": "RecordNotFound",
            "message": f"Review record '{record_id}' not found.",
            "details": {"record_id": record_id}
        }
    )


@router.get(
    "",
    response_model=HistoryListResponse,
    summary="List review history",
    description="Stored review records, newest first."
)
async def list_history(
    history: Annotated[ReviewHistory, Depends(get_history)]
) -> HistoryListResponse:
    records = [HistoryRecordSchema(**r.to_dict()) for r in history.list_records()]
    return HistoryListResponse(records=records, total=len(records))


@router.get(
    "/statistics",
    response_model=HistoryStatisticsSchema,
    summary="History statistics"
)
async def history_statistics(
    history: Annotated[ReviewHistory, Depends(get_history)]
) -> HistoryStatisticsSchema:
    return HistoryStatisticsSchema(**history.statistics())


@router.get(
    "/export",
    summary="Export history as CSV",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}}
)
async def export_history(
    history: Annotated[ReviewHistory, Depends(get_history)]
) -> Response:
    """
    Download every record as CSV, prefixed with a UTF-8 BOM.
    """
    file_name = f"review_history_{datetime.now().strftime('%Y%m%d')}.csv"
    return Response(
        content="\ufeff" + history.export_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'}
    )


@router.get(
    "/{record_id}",
    response_model=HistoryRecordSchema,
    responses={404: {"model": ErrorResponse, "description": "Record not found"}},
    summary="Get one review record"
)
async def get_record(
    record_id: str,
    history: Annotated[ReviewHistory, Depends(get_history)]
) -> HistoryRecordSchema:
    record = history.get(record_id)
    if record is None:
        raise record_not_found(record_id)
    return HistoryRecordSchema(**record.to_dict())


@router.delete(
    "/{record_id}",
    responses={404: {"model": ErrorResponse, "description": "Record not found"}},
    summary="Delete one review record"
)
async def delete_record(
    record_id: str,
    history: Annotated[ReviewHistory, Depends(get_history)]
) -> dict[str, Any]:
    if not history.delete(record_id):
        raise record_not_found(record_id)
    logger.info(f"Deleted review record {record_id}")
    return {"deleted": True, "record_id": record_id}


@router.delete(
    "",
    summary="Clear review history"
)
async def clear_history(
    history: Annotated[ReviewHistory, Depends(get_history)]
) -> dict[str, Any]:
    history.clear()
    logger.info("Cleared review history")
    return {"cleared": True}
