"""
Claude menu extraction service.

Turns an uploaded menu PDF into an ExtractedMenu. Text is pulled with
pdfplumber for the preview; the structured extraction sends the PDF
itself to Claude as a document block.
"""

import base64
import json
import re
from io import BytesIO
from typing import Optional

import anthropic
import pdfplumber
import structlog
from pydantic import ValidationError as PydanticValidationError

from config import settings
from exceptions import MenuExtractionError
from models.menu_extraction import ExtractedMenu, ExtractedMenuItem

logger = structlog.get_logger(__name__)


class MenuExtractionService:
    """
    Extract menu items from restaurant menu PDFs using Claude.

    Handles food, beverage and wine lists, including wines sold in
    several sizes.
    """

    # System prompt for menu parsing
    SYSTEM_PROMPT = """You are a restaurant menu parser. Extract every menu item from the document.

IMPORTANT: Return ONLY valid JSON, no markdown, no explanation, no code blocks.

For each item extract (use null or [] if not found):
- name: Item name exactly as printed
- description: Short description as printed
- price: Main price as a number (no currency symbol)
- item_type: one of "food", "beverage", "wine"
- category: Menu section heading the item appears under (e.g. "Starters", "Mains", "Wine List")
- ingredients: List of ingredients mentioned in the name or description
- is_gluten_free, is_vegan, is_vegetarian: true only if the menu says so (GF, V, VG markers)

WINE ITEMS:
Classify as "wine" anything with a producer, grape, appellation or vintage (e.g. "Barolo DOCG 2016").
- wine_style: one of "still", "sparkling", "champagne", "dessert", "fortified", "other" (use "other" if unsure)
- wine_producer: Producer or winery
- wine_grape_variety: List of grape varieties, only if you can determine them
- wine_vintage: Vintage year as a number
- wine_region: Region or appellation
- wine_serving_options: Every size/price pair listed, e.g. [{"size": "Glass", "price": 12}, {"size": "Bottle", "price": 48}]
- wine_pairings: Dishes from THIS menu that pair well (max 4)

For each item also return "confidence": an object mapping field names to 0.0-1.0.

Return JSON in this exact structure:
{
  "menu_name": "Dinner Menu",
  "items": [
    {
      "name": "Grilled Salmon",
      "description": "With lemon butter",
      "price": 24.5,
      "item_type": "food",
      "category": "Mains",
      "ingredients": ["salmon", "lemon", "butter"],
      "is_gluten_free": true,
      "is_vegan": false,
      "is_vegetarian": false,
      "confidence": {"name": 0.98, "price": 0.95, "category": 0.9}
    }
  ],
  "overall_confidence": 0.85,
  "notes": "Two items had no visible price."
}"""

    def __init__(self):
        """Initialize menu extraction service."""
        if settings.extraction_configured:
            self.client = anthropic.Anthropic(api_key=settings.anthropic_api_key)
        else:
            self.client = None

    def extract_text(self, pdf_bytes: bytes) -> str:
        """
        Extract plain text using pdfplumber.

        Raises:
            MenuExtractionError: If the PDF cannot be read
        """
        all_text = ""
        try:
            with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if page_text:
                        all_text += page_text + "\n"
        except Exception as e:
            logger.warning("pdf_text_extraction_failed", error=str(e))
            raise MenuExtractionError(f"Could not read PDF text: {e}")
        return all_text

    def extract_menu(self, pdf_bytes: bytes, filename: Optional[str] = None) -> ExtractedMenu:
        """
        Send the PDF to Claude and parse the menu it returns.

        Args:
            pdf_bytes: PDF file content
            filename: Original file name, passed as a hint

        Returns:
            ExtractedMenu

        Raises:
            MenuExtractionError: If Claude is not configured, the API call
                fails, or the response is not usable JSON
        """
        if self.client is None:
            raise MenuExtractionError(
                "Menu extraction is not configured. Set ANTHROPIC_API_KEY."
            )

        logger.info("menu_extraction_started", pdf_size=len(pdf_bytes), filename=filename)

        prompt = "Parse this restaurant menu and extract all menu items."
        if filename:
            prompt += f"\n\nFile name: {filename}"

        try:
            response = self.client.messages.create(
                model=settings.extraction_model,
                max_tokens=settings.extraction_max_tokens,
                system=self.SYSTEM_PROMPT,
                messages=[{
                    "role": "user",
                    "content": [
                        {
                            "type": "document",
                            "source": {
                                "type": "base64",
                                "media_type": "application/pdf",
                                "data": base64.b64encode(pdf_bytes).decode("utf-8")
                            }
                        },
                        {"type": "text", "text": prompt},
                    ]
                }]
            )
        except anthropic.APIError as e:
            logger.error("claude_api_error", error=str(e))
            raise MenuExtractionError(f"Claude API error: {e}")

        response_text = response.content[0].text
        logger.debug("claude_response_received", response_length=len(response_text))

        menu = self.parse_response(response_text)

        logger.info(
            "menu_extraction_completed",
            menu_name=menu.menu_name,
            items=len(menu.items),
            overall_confidence=menu.overall_confidence
        )
        return menu

    def parse_response(self, response_text: str) -> ExtractedMenu:
        """
        Parse Claude's JSON response into an ExtractedMenu.

        Items that do not fit the schema are dropped and counted in notes.
        """
        # Clean response - remove markdown code blocks if present
        cleaned = response_text.strip()
        if cleaned.startswith("```"):
            cleaned = re.sub(r'^```(?:json)?\s*', '', cleaned)
            cleaned = re.sub(r'\s*```$', '', cleaned)

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error("json_parse_failed", response_preview=response_text[:500], error=str(e))
            raise MenuExtractionError(
                "AI response was not valid JSON.",
                details={"error": str(e)}
            )

        if isinstance(data, list):
            data = {"items": data}
        if not isinstance(data, dict):
            raise MenuExtractionError("AI response did not contain a menu.")

        items = []
        dropped = 0
        for raw in data.get("items") or []:
            try:
                items.append(ExtractedMenuItem.model_validate(raw))
            except PydanticValidationError as e:
                dropped += 1
                logger.warning("extracted_item_dropped", item=str(raw)[:200], error=str(e))

        notes = data.get("notes")
        if dropped:
            notes = f"{notes + ' ' if notes else ''}{dropped} item(s) could not be read."

        confidence = data.get("overall_confidence", 0.5)
        try:
            confidence = min(max(float(confidence), 0.0), 1.0)
        except (TypeError, ValueError):
            confidence = 0.5

        return ExtractedMenu(
            menu_name=data.get("menu_name"),
            items=items,
            overall_confidence=confidence,
            notes=notes
        )


# Singleton instance
_menu_extraction_service: Optional[MenuExtractionService] = None


def get_menu_extraction_service() -> MenuExtractionService:
    """Get or create MenuExtractionService instance."""
    global _menu_extraction_service
    if _menu_extraction_service is None:
        _menu_extraction_service = MenuExtractionService()
    return _menu_extraction_service
