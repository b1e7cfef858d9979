"""
Menu API routes.

Lists a restaurant's menus so the client can pick an import target.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from exceptions import AppError
from models.menu import MenuListResponse
from services.menu_service import get_menu_service

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
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
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("", response_model=MenuListResponse)
async def list_menus(
    restaurant_id: str = Query(..., description="Restaurant whose menus to list")
):
    """List a restaurant's menus, by name."""
    try:
        menus = get_menu_service().list_menus(restaurant_id)
        return MenuListResponse(data=menus, total=len(menus))
    except Exception as e:
        return handle_error(e)
