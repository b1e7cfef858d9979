"""
Menu upload preview API routes.

Upload a menu PDF, then review and edit the parsed items in the
server-held preview before the conflict check and import.

See routes/menu_import.py for conflict check and finalize.
"""

from fastapi import APIRouter, File, Query, UploadFile
from fastapi.responses import JSONResponse
import structlog

from config import settings
from exceptions import AppError
from models.menu_upload import (
    CategoryChangeResult,
    CategoryCreateRequest,
    CategoryRenameRequest,
    FieldEditRequest,
    GroupedPreviewView,
    ImportActionRequest,
    MenuUploadPreview,
    MenuUploadPreviewResponse,
    MoveItemRequest,
    ParsedMenuItem,
    ServingOptionRequest,
    ServingOptionUpdate,
    UserActionRequest,
    WineServingOption,
)
from services import preview_cache_service
from services.menu_preview_service import get_menu_preview_service
from services.preview_workspace_service import get_preview_workspace_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/menus/upload", tags=["Menu Upload"])


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
# PREVIEW
# ===================

@router.post("/preview", response_model=MenuUploadPreviewResponse)
async def upload_menu_preview(
    file: UploadFile = File(..., description="Menu PDF to parse")
):
    """
    Parse a menu PDF and return an editable preview.

    Nothing is saved until /import/finalize is called.
    Extraction problems are reported in preview.global_errors.

    Raises:
        422: File empty, not a PDF, or too large
    """
    try:
        content = await file.read()
        preview = get_menu_preview_service().create_preview(
            content,
            filename=file.filename,
            content_type=file.content_type
        )

        item_count = len(preview.parsed_items)
        if item_count:
            message = f"Parsed {item_count} items from {file.filename or 'the uploaded file'}."
        else:
            message = "No menu items could be parsed from the document."

        return MenuUploadPreviewResponse(
            success=item_count > 0,
            message=message,
            preview=preview,
            expires_in_minutes=settings.preview_ttl_minutes
        )

    except Exception as e:
        return handle_error(e)


@router.get("/preview/{preview_id}", response_model=MenuUploadPreview)
async def get_preview(preview_id: str):
    """
    Get the current state of a preview.

    Raises:
        404: Preview not found or expired
    """
    try:
        return get_preview_workspace_service().get_preview(preview_id)
    except Exception as e:
        return handle_error(e)


@router.get("/preview/{preview_id}/grouped", response_model=GroupedPreviewView)
async def get_grouped_preview(preview_id: str):
    """
    Items grouped by category.

    Categories are alphabetical with "Uncategorized" last; each group is
    split into food/beverage and wine tables.
    """
    try:
        return get_preview_workspace_service().grouped_view(preview_id)
    except Exception as e:
        return handle_error(e)


@router.delete("/preview/{preview_id}", status_code=204)
async def discard_preview(preview_id: str):
    """Discard a preview without importing."""
    preview_cache_service.delete_preview(preview_id)
    logger.info("preview_discarded", preview_id=preview_id)


# ===================
# ITEMS
# ===================

@router.patch(
    "/preview/{preview_id}/items/{item_id}/fields/{field_name}",
    response_model=ParsedMenuItem
)
async def edit_item_field(preview_id: str, item_id: str, field_name: str, data: FieldEditRequest):
    """
    Inline edit of one field.

    Invalid values are kept and flagged on the field; the item status
    becomes error_client_validation until every field is valid again.

    Raises:
        404: Preview or item not found
        422: Unknown field name
    """
    try:
        return get_preview_workspace_service().edit_field(preview_id, item_id, field_name, data.value)
    except Exception as e:
        return handle_error(e)


@router.put("/preview/{preview_id}/items/{item_id}/user-action", response_model=ParsedMenuItem)
async def set_user_action(preview_id: str, item_id: str, data: UserActionRequest):
    """Keep or ignore an item."""
    try:
        return get_preview_workspace_service().set_user_action(preview_id, item_id, data.user_action)
    except Exception as e:
        return handle_error(e)


@router.put("/preview/{preview_id}/items/{item_id}/import-action", response_model=ParsedMenuItem)
async def set_import_action(preview_id: str, item_id: str, data: ImportActionRequest):
    """
    Choose create, update or skip for an item.

    Raises:
        422: Update without a target, or a target outside the candidates
    """
    try:
        return get_preview_workspace_service().set_import_action(
            preview_id,
            item_id,
            data.import_action,
            data.existing_item_id
        )
    except Exception as e:
        return handle_error(e)


@router.post("/preview/{preview_id}/items/{item_id}/move", response_model=CategoryChangeResult)
async def move_item(preview_id: str, item_id: str, data: MoveItemRequest):
    """Drag-and-drop an item onto another category."""
    try:
        return get_preview_workspace_service().move_item(preview_id, item_id, data.category)
    except Exception as e:
        return handle_error(e)


# ===================
# WINE SERVING OPTIONS
# ===================

@router.post(
    "/preview/{preview_id}/items/{item_id}/serving-options",
    response_model=WineServingOption,
    status_code=201
)
async def add_serving_option(preview_id: str, item_id: str, data: ServingOptionRequest):
    try:
        return get_preview_workspace_service().add_serving_option(
            preview_id, item_id, data.size, data.price
        )
    except Exception as e:
        return handle_error(e)


@router.patch(
    "/preview/{preview_id}/items/{item_id}/serving-options/{option_id}",
    response_model=WineServingOption
)
async def update_serving_option(
    preview_id: str,
    item_id: str,
    option_id: str,
    data: ServingOptionUpdate
):
    """Only the attributes present in the body are changed."""
    try:
        return get_preview_workspace_service().update_serving_option(
            preview_id, item_id, option_id, **data.model_dump(exclude_unset=True)
        )
    except Exception as e:
        return handle_error(e)


@router.delete(
    "/preview/{preview_id}/items/{item_id}/serving-options/{option_id}",
    response_model=ParsedMenuItem
)
async def remove_serving_option(preview_id: str, item_id: str, option_id: str):
    try:
        return get_preview_workspace_service().remove_serving_option(preview_id, item_id, option_id)
    except Exception as e:
        return handle_error(e)


# ===================
# CATEGORIES
# ===================

@router.post("/preview/{preview_id}/categories", response_model=CategoryChangeResult)
async def add_category(preview_id: str, data: CategoryCreateRequest):
    try:
        return get_preview_workspace_service().add_category(preview_id, data.name)
    except Exception as e:
        return handle_error(e)


@router.put("/preview/{preview_id}/categories/{name}", response_model=CategoryChangeResult)
async def rename_category(preview_id: str, name: str, data: CategoryRenameRequest):
    """
    Rename a category; its items follow.

    A name that collides with another category after normalization is
    rejected (success=false with a message).
    """
    try:
        return get_preview_workspace_service().rename_category(preview_id, name, data.new_name)
    except Exception as e:
        return handle_error(e)


@router.delete("/preview/{preview_id}/categories/{name}", response_model=CategoryChangeResult)
async def delete_category(
    preview_id: str,
    name: str,
    confirm: bool = Query(False, description="Move contained items to Uncategorized and delete")
):
    """
    Delete a category.

    Without confirm, a category that still holds items is not deleted and
    the result has requires_confirmation=true.
    """
    try:
        return get_preview_workspace_service().delete_category(preview_id, name, confirm)
    except Exception as e:
        return handle_error(e)


@router.post("/preview/{preview_id}/categories/{name}/toggle", response_model=CategoryChangeResult)
async def toggle_category(preview_id: str, name: str):
    """Expand or collapse a category in the grouped view."""
    try:
        return get_preview_workspace_service().toggle_category(preview_id, name)
    except Exception as e:
        return handle_error(e)
