"""
Menu upload pipeline models.

Covers the preview workspace (parsed items with per-field validity),
conflict checks and the final import result.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from utils.text_utils import UNCATEGORIZED


class FieldKind(str, Enum):
    """Variant tag of a parsed field value."""
    TEXT = "text"
    NUMERIC = "numeric"
    LIST = "list"
    FLAG = "flag"
    SERVING_OPTIONS = "serving_options"


class ItemType(str, Enum):
    FOOD = "food"
    BEVERAGE = "beverage"
    WINE = "wine"


class WineStyle(str, Enum):
    STILL = "still"
    SPARKLING = "sparkling"
    CHAMPAGNE = "champagne"
    DESSERT = "dessert"
    FORTIFIED = "fortified"
    OTHER = "other"


class ItemStatus(str, Enum):
    """Preview status of an item. Derived, see reconciliation_service.derive_status."""
    NEW = "new"
    EDITED = "edited"
    ERROR = "error"
    IGNORED = "ignored"
    ERROR_CLIENT_VALIDATION = "error_client_validation"


class UserAction(str, Enum):
    KEEP = "keep"
    IGNORE = "ignore"


class ImportAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class ConflictStatus(str, Enum):
    NO_CONFLICT = "no_conflict"
    UPDATE_CANDIDATE = "update_candidate"
    MULTIPLE_CANDIDATES = "multiple_candidates"
    ERROR_PROCESSING_CONFLICT = "error_processing_conflict"
    SKIPPED_BY_USER = "skipped_by_user"


class ImportOverallStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class ImportItemOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


class ImportJobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Fixed variant of every menu item field
FIELD_KINDS: dict[str, FieldKind] = {
    "name": FieldKind.TEXT,
    "description": FieldKind.TEXT,
    "price": FieldKind.NUMERIC,
    "category": FieldKind.TEXT,
    "item_type": FieldKind.TEXT,
    "ingredients": FieldKind.LIST,
    "is_gluten_free": FieldKind.FLAG,
    "is_vegan": FieldKind.FLAG,
    "is_vegetarian": FieldKind.FLAG,
    "wine_style": FieldKind.TEXT,
    "wine_producer": FieldKind.TEXT,
    "wine_grape_variety": FieldKind.TEXT,
    "wine_vintage": FieldKind.NUMERIC,
    "wine_region": FieldKind.TEXT,
    "wine_serving_options": FieldKind.SERVING_OPTIONS,
    "wine_pairings": FieldKind.TEXT,
}


# ===================
# PREVIEW ITEMS
# ===================

class WineServingOption(BaseModel):
    """One purchasable size/price variant of a wine item."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    size: str = ""
    price: Optional[Union[float, str]] = None
    is_valid_size: bool = True
    is_valid_price: bool = True
    size_error: Optional[str] = None
    price_error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.is_valid_size and self.is_valid_price


class MenuItemField(BaseModel):
    """A single parsed field with its validity and AI confidence."""

    kind: FieldKind
    value: Any = None
    original_value: Any = None
    is_valid: bool = True
    error_message: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)

    @model_validator(mode="before")
    @classmethod
    def coerce_serving_options(cls, data: Any) -> Any:
        """Serving option lists arrive as plain dicts from JSON."""
        if not isinstance(data, dict) or data.get("kind") != FieldKind.SERVING_OPTIONS.value:
            return data
        data = dict(data)
        for key in ("value", "original_value"):
            options = data.get(key)
            if isinstance(options, list):
                data[key] = [
                    WineServingOption.model_validate(opt) if isinstance(opt, dict) else opt
                    for opt in options
                ]
        return data


class ConflictResolution(BaseModel):
    """Outcome of matching a parsed item against the stored menu."""

    status: ConflictStatus
    message: Optional[str] = None
    existing_item_id: Optional[str] = None
    candidate_item_ids: list[str] = Field(default_factory=list)
    item_versions: dict[str, str] = Field(
        default_factory=dict,
        description="updated_at of every matched stored item, keyed by id, as read during the check"
    )


class ParsedMenuItem(BaseModel):
    """
    Unit of work moving through preview → conflict check → import.

    The id is generated when the preview is built and stays stable for
    the whole lifecycle.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    internal_index: int = 0
    fields: dict[str, MenuItemField] = Field(default_factory=dict)
    status: ItemStatus = ItemStatus.NEW
    edited: bool = False
    user_action: UserAction = UserAction.KEEP
    import_action: Optional[ImportAction] = None
    import_action_is_user_choice: bool = False
    existing_item_id: Optional[str] = None
    existing_item_version: Optional[str] = None
    conflict_resolution: Optional[ConflictResolution] = None

    def field_value(self, name: str, default: Any = None) -> Any:
        field = self.fields.get(name)
        if field is None or field.value is None:
            return default
        return field.value

    @property
    def name(self) -> str:
        return str(self.field_value("name", "") or "")

    @property
    def category(self) -> str:
        return str(self.field_value("category", UNCATEGORIZED) or UNCATEGORIZED)

    @property
    def item_type(self) -> str:
        return str(self.field_value("item_type", ItemType.FOOD.value))

    @property
    def is_wine(self) -> bool:
        return self.item_type == ItemType.WINE.value


class PreviewSummary(BaseModel):
    total_items_parsed: int = 0
    items_with_potential_errors: int = 0


class MenuUploadPreview(BaseModel):
    """
    Server-held preview of one uploaded document.

    `categories` is the category set shown to the user; it always
    contains "Uncategorized". The grouped view is derived from
    `parsed_items`, never stored.
    """

    preview_id: str = Field(default_factory=lambda: str(uuid4()))
    source_format: Literal["pdf"] = "pdf"
    filename: Optional[str] = None
    parsed_menu_name: str = "Menu from PDF"
    parsed_items: list[ParsedMenuItem] = Field(default_factory=list)
    detected_categories: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=lambda: [UNCATEGORIZED])
    expanded_categories: dict[str, bool] = Field(default_factory=dict)
    global_errors: list[str] = Field(default_factory=list)
    summary: PreviewSummary = Field(default_factory=PreviewSummary)
    raw_text: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def find_item(self, item_id: str) -> Optional[ParsedMenuItem]:
        for item in self.parsed_items:
            if item.id == item_id:
                return item
        return None


class MenuUploadPreviewResponse(BaseModel):
    """Response of POST /preview."""

    success: bool
    message: str
    preview: MenuUploadPreview
    expires_in_minutes: int


# ===================
# WORKSPACE VIEWS / REQUESTS
# ===================

class CategoryGroup(BaseModel):
    """Items of one category, split into the two table shapes."""

    name: str
    is_expanded: bool = False
    item_count: int = 0
    food_beverage_items: list[ParsedMenuItem] = Field(default_factory=list)
    wine_items: list[ParsedMenuItem] = Field(default_factory=list)


class GroupedPreviewView(BaseModel):
    preview_id: str
    category_order: list[str]
    groups: list[CategoryGroup]


class CategoryChangeResult(BaseModel):
    """Category operations report problems as data, not exceptions."""

    success: bool
    message: Optional[str] = None
    requires_confirmation: bool = False
    affected_item_ids: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)


class FieldEditRequest(BaseModel):
    value: Any = None


class UserActionRequest(BaseModel):
    user_action: UserAction


class ImportActionRequest(BaseModel):
    import_action: ImportAction
    existing_item_id: Optional[str] = None


class MoveItemRequest(BaseModel):
    category: str = Field(..., description="Drop target category")


class CategoryCreateRequest(BaseModel):
    name: str


class CategoryRenameRequest(BaseModel):
    new_name: str


class ServingOptionRequest(BaseModel):
    size: str = ""
    price: Optional[Union[float, str]] = None


class ServingOptionUpdate(BaseModel):
    """Only the provided attributes are changed."""
    size: Optional[str] = None
    price: Optional[Union[float, str]] = None


# ===================
# CONFLICT CHECK
# ===================

class ProcessConflictsRequest(BaseModel):
    """
    Conflict check request.

    Either send the items directly, or a preview_id to check (and update)
    the server-held preview.
    """

    restaurant_id: str = Field(..., description="Restaurant scope for matching")
    target_menu_id: Optional[str] = None
    preview_id: Optional[str] = None
    items_to_process: list[ParsedMenuItem] = Field(default_factory=list)


class ProcessConflictsSummary(BaseModel):
    items_requiring_user_action: int = 0
    potential_updates_identified: int = 0
    new_items_confirmed: int = 0
    total_processed: int = 0


class ProcessConflictsResponse(BaseModel):
    processed_items: list[ParsedMenuItem]
    summary: ProcessConflictsSummary


# ===================
# FINALIZE
# ===================

class FinalizeImportRequest(BaseModel):
    """
    Commit request.

    items_to_import may be omitted when preview_id refers to a cached
    preview; the preview's items are used then.
    """

    restaurant_id: str
    preview_id: Optional[str] = None
    parsed_menu_name: Optional[str] = None
    target_menu_id: Optional[str] = None
    replace_all_items: bool = False
    items_to_import: Optional[list[ParsedMenuItem]] = None


class ImportResultItemDetail(BaseModel):
    id: str
    name: str
    status: ImportItemOutcome
    import_action: Optional[ImportAction] = None
    existing_item_id: Optional[str] = None
    new_item_id: Optional[str] = None
    error_reason: Optional[str] = None


class ImportResult(BaseModel):
    """
    Outcome of a finalize.

    Returned directly for synchronous imports and by the job lookup for
    background imports. While a job is still running overall_status is
    None and only job_id/job_status are meaningful.
    """

    job_id: Optional[str] = None
    job_status: Optional[ImportJobStatus] = None
    overall_status: Optional[ImportOverallStatus] = None
    message: str = ""
    menu_id: Optional[str] = None
    menu_name: Optional[str] = None
    items_processed: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_skipped: int = 0
    items_errored: int = 0
    error_details: list[ImportResultItemDetail] = Field(default_factory=list)
    error_report: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.overall_status is not None


class ImportJob(BaseModel):
    """Durable record of a background import."""

    id: str
    restaurant_id: str
    status: ImportJobStatus
    item_count: int = 0
    request: dict[str, Any] = Field(default_factory=dict)
    result: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
