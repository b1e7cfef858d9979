"""
Menu extraction models.

Shape of what the AI extractor hands back for one document. Everything is
optional except the item name since extraction may not find everything.
"""

from typing import Optional
from pydantic import BaseModel, Field


class ExtractedServingOption(BaseModel):
    """A size/price pair listed for a wine (glass, bottle, carafe...)."""

    size: str
    price: Optional[float] = Field(None, ge=0)


class ExtractedMenuItem(BaseModel):
    """One candidate menu item as returned by the extractor."""

    name: str = ""
    description: Optional[str] = None
    price: Optional[float] = None
    item_type: str = "food"
    category: Optional[str] = None
    ingredients: list[str] = Field(default_factory=list)
    is_gluten_free: bool = False
    is_vegan: bool = False
    is_vegetarian: bool = False

    # Wine only
    wine_style: Optional[str] = None
    wine_producer: Optional[str] = None
    wine_grape_variety: list[str] = Field(default_factory=list)
    wine_vintage: Optional[int] = None
    wine_region: Optional[str] = None
    wine_serving_options: list[ExtractedServingOption] = Field(default_factory=list)
    wine_pairings: list[str] = Field(default_factory=list)

    # Per-field confidence, keyed by field name
    confidence: dict[str, float] = Field(default_factory=dict)


class ExtractedMenu(BaseModel):
    """Complete extraction result for one uploaded document."""

    menu_name: Optional[str] = None
    items: list[ExtractedMenuItem] = Field(default_factory=list)
    overall_confidence: float = Field(0.0, ge=0.0, le=1.0)
    notes: Optional[str] = None
