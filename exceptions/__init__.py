"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Menu store
    MenuNotFoundError,
    MenuItemNotFoundError,
    MenuItemVersionConflictError,
    MenuItemDataError,
    MissingScopeError,

    # Preview
    PreviewNotFoundError,
    PreviewItemNotFoundError,
    ServingOptionNotFoundError,
    UnknownFieldError,
    InvalidImportActionError,

    # Upload / extraction
    InvalidUploadError,
    MenuExtractionError,

    # Import jobs
    ImportJobNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Menu store
    "MenuNotFoundError",
    "MenuItemNotFoundError",
    "MenuItemVersionConflictError",
    "MenuItemDataError",
    "MissingScopeError",

    # Preview
    "PreviewNotFoundError",
    "PreviewItemNotFoundError",
    "ServingOptionNotFoundError",
    "UnknownFieldError",
    "InvalidImportActionError",

    # Upload / extraction
    "InvalidUploadError",
    "MenuExtractionError",

    # Import jobs
    "ImportJobNotFoundError",
]
