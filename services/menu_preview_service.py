"""
Menu upload preview service.

Upload → extraction → validated, categorized preview cached for editing.
Extraction problems end up in the preview's global_errors; the upload
itself only fails when the file is rejected.
"""

from datetime import date
from typing import Any, Optional

import structlog

from config import settings
from exceptions import InvalidUploadError, MenuExtractionError
from models.menu_extraction import ExtractedMenu, ExtractedMenuItem
from models.menu_upload import (
    FieldKind,
    ItemType,
    MenuItemField,
    MenuUploadPreview,
    ParsedMenuItem,
    WineServingOption,
    WineStyle,
)
from services import preview_cache_service
from services.menu_extraction_service import MenuExtractionService, get_menu_extraction_service
from services.preview_workspace_service import refresh_summary
from services.reconciliation_service import revalidate_item
from utils.text_utils import UNCATEGORIZED, normalize_category

logger = structlog.get_logger(__name__)

DEFAULT_MENU_NAME = "Menu from PDF"
PDF_MAGIC = b"%PDF"


# ===================
# PREVIEW BUILDING
# ===================

def _field(kind: FieldKind, value: Any, confidence: Optional[float] = None) -> MenuItemField:
    if confidence is not None:
        confidence = min(max(float(confidence), 0.0), 1.0)
    return MenuItemField(kind=kind, value=value, original_value=value, confidence=confidence)


def build_item(extracted: ExtractedMenuItem, index: int, today: Optional[date] = None) -> ParsedMenuItem:
    """One extracted candidate → validated ParsedMenuItem with a fresh id."""
    conf = extracted.confidence

    item_type = (extracted.item_type or "").strip().lower()
    if item_type not in [t.value for t in ItemType]:
        item_type = ItemType.FOOD.value

    fields = {
        "name": _field(FieldKind.TEXT, extracted.name.strip(), conf.get("name")),
        "description": _field(FieldKind.TEXT, extracted.description or "", conf.get("description")),
        "price": _field(FieldKind.NUMERIC, extracted.price, conf.get("price")),
        "category": _field(FieldKind.TEXT, normalize_category(extracted.category), conf.get("category")),
        "item_type": _field(FieldKind.TEXT, item_type, conf.get("item_type")),
        "ingredients": _field(FieldKind.LIST, list(extracted.ingredients), conf.get("ingredients")),
        "is_gluten_free": _field(FieldKind.FLAG, extracted.is_gluten_free, conf.get("is_gluten_free")),
        "is_vegan": _field(FieldKind.FLAG, extracted.is_vegan, conf.get("is_vegan")),
        "is_vegetarian": _field(FieldKind.FLAG, extracted.is_vegetarian, conf.get("is_vegetarian")),
    }

    if item_type == ItemType.WINE.value:
        style = (extracted.wine_style or "").strip().lower() or WineStyle.OTHER.value
        fields.update({
            "wine_style": _field(FieldKind.TEXT, style, conf.get("wine_style")),
            "wine_producer": _field(FieldKind.TEXT, extracted.wine_producer or "", conf.get("wine_producer")),
            "wine_grape_variety": _field(
                FieldKind.TEXT, ", ".join(extracted.wine_grape_variety), conf.get("wine_grape_variety")
            ),
            "wine_vintage": _field(FieldKind.NUMERIC, extracted.wine_vintage, conf.get("wine_vintage")),
            "wine_region": _field(FieldKind.TEXT, extracted.wine_region or "", conf.get("wine_region")),
            "wine_serving_options": _field(
                FieldKind.SERVING_OPTIONS,
                [WineServingOption(size=opt.size, price=opt.price) for opt in extracted.wine_serving_options],
                conf.get("wine_serving_options")
            ),
            "wine_pairings": _field(FieldKind.TEXT, ", ".join(extracted.wine_pairings), conf.get("wine_pairings")),
        })

    item = ParsedMenuItem(internal_index=index, fields=fields)
    return revalidate_item(item, today)


def build_preview(
    extracted: ExtractedMenu,
    filename: Optional[str] = None,
    raw_text: Optional[str] = None,
    global_errors: Optional[list[str]] = None,
    today: Optional[date] = None
) -> MenuUploadPreview:
    """
    Assemble a preview from an extraction result.

    Categories are canonicalized; the category set is the detected
    categories in order of first appearance plus "Uncategorized".
    """
    items = [build_item(ex, index, today) for index, ex in enumerate(extracted.items)]

    detected: list[str] = []
    for item in items:
        category = item.field_value("category")
        if category not in detected:
            detected.append(category)

    categories = list(detected)
    if UNCATEGORIZED not in categories:
        categories.append(UNCATEGORIZED)

    menu_name = (extracted.menu_name or "").strip()
    if not menu_name and filename:
        menu_name = filename.rsplit(".", 1)[0] if filename.lower().endswith(".pdf") else filename
    menu_name = menu_name or DEFAULT_MENU_NAME

    preview = MenuUploadPreview(
        filename=filename,
        parsed_menu_name=menu_name,
        parsed_items=items,
        detected_categories=detected,
        categories=categories,
        expanded_categories={name: True for name in categories},
        global_errors=list(global_errors or []),
        raw_text=(raw_text or "")[:settings.raw_text_preview_chars] or None
    )
    refresh_summary(preview)
    return preview


class MenuPreviewService:
    """Creates upload previews."""

    def __init__(self, extractor: Optional[MenuExtractionService] = None):
        self.extractor = extractor or get_menu_extraction_service()

    def validate_upload(self, filename: Optional[str], content_type: Optional[str], content: bytes) -> None:
        """
        Raises:
            InvalidUploadError: If file is empty, not a PDF, or too large
        """
        if not content:
            raise InvalidUploadError("Uploaded file is empty.")

        is_pdf_name = bool(filename) and filename.lower().endswith(".pdf")
        is_pdf_type = content_type == "application/pdf"
        if not (is_pdf_name or is_pdf_type) or not content.startswith(PDF_MAGIC):
            raise InvalidUploadError(
                "Unsupported file format. Only PDF menus are supported.",
                details={"filename": filename, "content_type": content_type}
            )

        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        if len(content) > max_bytes:
            raise InvalidUploadError(
                f"File exceeds maximum size of {settings.max_upload_size_mb} MB.",
                details={"size_bytes": len(content)}
            )

    def create_preview(
        self,
        content: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = None
    ) -> MenuUploadPreview:
        """
        Validate, extract and cache a preview.

        Returns:
            Cached MenuUploadPreview

        Raises:
            InvalidUploadError: If file is rejected
        """
        self.validate_upload(filename, content_type, content)

        logger.info("menu_preview_started", filename=filename, size_bytes=len(content))

        global_errors: list[str] = []

        raw_text = None
        try:
            raw_text = self.extractor.extract_text(content)
        except MenuExtractionError as e:
            global_errors.append(e.message)

        try:
            extracted = self.extractor.extract_menu(content, filename)
        except MenuExtractionError as e:
            global_errors.append(e.message)
            extracted = ExtractedMenu()

        if extracted.notes:
            logger.info("menu_extraction_notes", notes=extracted.notes)

        preview = build_preview(extracted, filename, raw_text, global_errors)
        if not preview.parsed_items and not global_errors:
            preview.global_errors.append("No menu items could be parsed from the document.")

        preview_cache_service.store_preview(preview)

        logger.info(
            "menu_preview_created",
            preview_id=preview.preview_id,
            items=preview.summary.total_items_parsed,
            items_with_errors=preview.summary.items_with_potential_errors,
            global_errors=len(preview.global_errors)
        )
        return preview


# Singleton instance
_menu_preview_service: Optional[MenuPreviewService] = None


def get_menu_preview_service() -> MenuPreviewService:
    """Get or create menu preview service instance."""
    global _menu_preview_service
    if _menu_preview_service is None:
        _menu_preview_service = MenuPreviewService()
    return _menu_preview_service
