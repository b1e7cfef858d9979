"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.menu import (
    MenuResponse,
    MenuListResponse,
)
from models.menu_extraction import (
    ExtractedServingOption,
    ExtractedMenuItem,
    ExtractedMenu,
)
from models.menu_upload import (
    # Enums
    FieldKind,
    ItemType,
    WineStyle,
    ItemStatus,
    UserAction,
    ImportAction,
    ConflictStatus,
    ImportOverallStatus,
    ImportItemOutcome,
    ImportJobStatus,
    FIELD_KINDS,

    # Preview
    WineServingOption,
    MenuItemField,
    ConflictResolution,
    ParsedMenuItem,
    PreviewSummary,
    MenuUploadPreview,
    MenuUploadPreviewResponse,

    # Workspace
    CategoryGroup,
    GroupedPreviewView,
    CategoryChangeResult,
    FieldEditRequest,
    UserActionRequest,
    ImportActionRequest,
    MoveItemRequest,
    CategoryCreateRequest,
    CategoryRenameRequest,
    ServingOptionRequest,
    ServingOptionUpdate,

    # Conflicts
    ProcessConflictsRequest,
    ProcessConflictsSummary,
    ProcessConflictsResponse,

    # Import
    FinalizeImportRequest,
    ImportResultItemDetail,
    ImportResult,
    ImportJob,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Menus
    "MenuResponse",
    "MenuListResponse",

    # Extraction
    "ExtractedServingOption",
    "ExtractedMenuItem",
    "ExtractedMenu",

    # Enums
    "FieldKind",
    "ItemType",
    "WineStyle",
    "ItemStatus",
    "UserAction",
    "ImportAction",
    "ConflictStatus",
    "ImportOverallStatus",
    "ImportItemOutcome",
    "ImportJobStatus",
    "FIELD_KINDS",

    # Preview
    "WineServingOption",
    "MenuItemField",
    "ConflictResolution",
    "ParsedMenuItem",
    "PreviewSummary",
    "MenuUploadPreview",
    "MenuUploadPreviewResponse",

    # Workspace
    "CategoryGroup",
    "GroupedPreviewView",
    "CategoryChangeResult",
    "FieldEditRequest",
    "UserActionRequest",
    "ImportActionRequest",
    "MoveItemRequest",
    "CategoryCreateRequest",
    "CategoryRenameRequest",
    "ServingOptionRequest",
    "ServingOptionUpdate",

    # Conflicts
    "ProcessConflictsRequest",
    "ProcessConflictsSummary",
    "ProcessConflictsResponse",

    # Import
    "FinalizeImportRequest",
    "ImportResultItemDetail",
    "ImportResult",
    "ImportJob",
]
