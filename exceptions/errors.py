"""
Custom exception classes for the application.

Every error raised to the HTTP layer is an AppError carrying its code,
status and details. Per-item problems during conflict checks and imports
are recorded as data instead of raised.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "MENU_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# MENU STORE ERRORS
# ===================

class MenuNotFoundError(NotFoundError):
    """Menu not found for this restaurant."""

    def __init__(self, menu_id: str):
        super().__init__(
            resource="Menu",
            identifier=menu_id,
            code="MENU_NOT_FOUND"
        )


class MenuItemNotFoundError(NotFoundError):
    """Menu item not found in the target menu."""

    def __init__(self, item_id: str):
        super().__init__(
            resource="Menu item",
            identifier=item_id,
            code="MENU_ITEM_NOT_FOUND"
        )


class MenuItemVersionConflictError(ConflictError):
    """Menu item changed since it was matched during the conflict check."""

    def __init__(self, item_id: str, expected_version: Optional[str], actual_version: Optional[str]):
        super().__init__(
            code="MENU_ITEM_VERSION_CONFLICT",
            message=(
                f"Menu item {item_id} was modified by another request since the "
                f"conflict check. Re-run the conflict check before importing."
            ),
            details={
                "id": item_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            }
        )


class MenuItemDataError(ValidationError):
    """Parsed item data cannot be written as a menu item."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            code="MENU_ITEM_INVALID_DATA",
            message=message,
            details={"field": field} if field else None
        )


class MissingScopeError(ValidationError):
    """Request is missing the restaurant/menu scope it needs."""

    def __init__(self, message: str):
        super().__init__(
            code="MISSING_SCOPE",
            message=message
        )


# ===================
# PREVIEW ERRORS
# ===================

class PreviewNotFoundError(NotFoundError):
    """Upload preview not found or expired."""

    def __init__(self, preview_id: str):
        super().__init__(
            resource="Preview",
            identifier=preview_id,
            code="PREVIEW_NOT_FOUND"
        )


class PreviewItemNotFoundError(NotFoundError):
    """Item id is not part of the preview."""

    def __init__(self, item_id: str):
        super().__init__(
            resource="Preview item",
            identifier=item_id,
            code="PREVIEW_ITEM_NOT_FOUND"
        )


class ServingOptionNotFoundError(NotFoundError):
    """Serving option id is not part of the wine item."""

    def __init__(self, option_id: str):
        super().__init__(
            resource="Serving option",
            identifier=option_id,
            code="SERVING_OPTION_NOT_FOUND"
        )


class UnknownFieldError(ValidationError):
    """Field name is not one of the menu item fields."""

    def __init__(self, field_name: str, valid: list[str]):
        super().__init__(
            code="UNKNOWN_FIELD",
            message=f"Unknown menu item field: {field_name}",
            details={"provided": field_name, "valid": valid}
        )


class InvalidImportActionError(ValidationError):
    """Import action cannot be applied to this item."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="INVALID_IMPORT_ACTION",
            message=message,
            details=details
        )


# ===================
# UPLOAD / EXTRACTION ERRORS
# ===================

class InvalidUploadError(ValidationError):
    """Uploaded file rejected before extraction."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="INVALID_UPLOAD",
            message=message,
            details=details
        )


class MenuExtractionError(ExternalServiceError):
    """AI menu extraction failed."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="menu_extraction",
            message=message,
            details=details
        )


# ===================
# IMPORT JOB ERRORS
# ===================

class ImportJobNotFoundError(NotFoundError):
    """Import job not found."""

    def __init__(self, job_id: str):
        super().__init__(
            resource="Import job",
            identifier=job_id,
            code="IMPORT_JOB_NOT_FOUND"
        )
