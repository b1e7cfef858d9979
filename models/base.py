"""
Base schemas and mixins for persisted records.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class BaseSchema(BaseModel):
    """
    Base for schemas of stored rows.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class TimestampMixin(BaseModel):
    """Add timestamps to response models."""
    created_at: datetime
    updated_at: Optional[datetime] = None
