"""
Menu conflict check and import API routes.

Flow: /conflicts/process → user picks actions → /import/finalize.
Large imports return a job_id; poll /import/job/{job_id}.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Query
from fastapi.responses import JSONResponse, Response
import structlog

from exceptions import AppError
from models.menu_upload import (
    FinalizeImportRequest,
    ImportResult,
    ProcessConflictsRequest,
    ProcessConflictsResponse,
)
from services.conflict_resolver_service import get_conflict_resolver_service
from services.error_report_service import error_report_filename, generate_error_report
from services.import_job_service import get_import_job_service
from services.menu_import_service import get_menu_import_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/menus/upload", tags=["Menu Import"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception, message: str = "An unexpected error occurred") -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": message
            }
        }
    )


# ===================
# CONFLICTS
# ===================

@router.post("/conflicts/process", response_model=ProcessConflictsResponse)
async def process_conflicts(data: ProcessConflictsRequest):
    """
    Match parsed items against the restaurant's existing menu items.

    With preview_id the cached preview is checked and updated; otherwise
    items_to_process is checked and returned annotated. Nothing is written
    to the menu.

    Raises:
        404: Preview or target menu not found
        422: Missing restaurant_id
    """
    try:
        service = get_conflict_resolver_service()
        if data.preview_id:
            return service.resolve_preview(data.preview_id, data.restaurant_id, data.target_menu_id)
        return service.resolve(data.items_to_process, data.restaurant_id, data.target_menu_id)
    except Exception as e:
        return handle_error(e)


# ===================
# IMPORT
# ===================

@router.post("/import/finalize", response_model=ImportResult)
async def finalize_import(data: FinalizeImportRequest, background_tasks: BackgroundTasks):
    """
    Commit the reconciled items.

    Small batches return the full result. Batches above the async
    threshold return job_id with job_status=pending and no
    overall_status; poll /import/job/{job_id}.
    """
    try:
        return get_menu_import_service().finalize(data, background_tasks)
    except AppError as e:
        return handle_error(e)
    except Exception as e:
        logger.exception("finalize_import_crashed", restaurant_id=data.restaurant_id)
        return handle_error(e, message="Failed to finalize import")


@router.get("/import/job/{job_id}", response_model=ImportResult)
async def get_import_job(
    job_id: str,
    restaurant_id: Optional[str] = Query(None, description="Only find jobs of this restaurant")
):
    """
    Status of a background import.

    overall_status stays null until the job is completed or failed; from
    then on every lookup returns the same result.

    Raises:
        404: Job not found
    """
    try:
        return get_import_job_service().get_job_result(job_id, restaurant_id)
    except Exception as e:
        return handle_error(e)


@router.get("/import/job/{job_id}/error-report")
async def download_error_report(
    job_id: str,
    restaurant_id: Optional[str] = Query(None, description="Only find jobs of this restaurant")
):
    """
    Per-item import errors of a job as CSV.

    Columns: ItemID, ItemName, ActionAttempted, ErrorReason.
    """
    try:
        result = get_import_job_service().get_job_result(job_id, restaurant_id)
        return Response(
            content=generate_error_report(result.error_details),
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{error_report_filename(job_id)}"'
            }
        )
    except Exception as e:
        return handle_error(e)
