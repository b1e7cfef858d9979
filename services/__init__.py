"""
Business logic services.

Each service handles one stage of the menu upload pipeline.
"""

from services.menu_service import MenuService, get_menu_service
from services.preview_workspace_service import (
    PreviewWorkspaceService,
    get_preview_workspace_service,
)
from services.menu_extraction_service import MenuExtractionService, get_menu_extraction_service
from services.menu_preview_service import MenuPreviewService, get_menu_preview_service
from services.conflict_resolver_service import (
    ConflictResolverService,
    get_conflict_resolver_service,
)
from services.import_job_service import ImportJobService, get_import_job_service
from services.menu_import_service import MenuImportService, get_menu_import_service

__all__ = [
    "MenuService",
    "get_menu_service",
    "PreviewWorkspaceService",
    "get_preview_workspace_service",
    "MenuExtractionService",
    "get_menu_extraction_service",
    "MenuPreviewService",
    "get_menu_preview_service",
    "ConflictResolverService",
    "get_conflict_resolver_service",
    "ImportJobService",
    "get_import_job_service",
    "MenuImportService",
    "get_menu_import_service",
]
