"""
Persisted menu schemas.

Stored menu items stay plain dicts; see services.menu_service for their columns.
"""

from pydantic import Field

from models.base import BaseSchema, TimestampMixin


class MenuResponse(BaseSchema, TimestampMixin):
    """A restaurant menu."""

    id: str = Field(..., description="Menu UUID")
    restaurant_id: str = Field(..., description="Owning restaurant")
    name: str = Field(..., description="Menu name")
    is_active: bool = Field(True, description="Whether staff can see the menu")


class MenuListResponse(BaseSchema):
    """Menus of one restaurant."""

    data: list[MenuResponse]
    total: int

