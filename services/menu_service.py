"""
Menu store service.

Scoped reads and writes on the menus and menu_items tables. Every query
is filtered by restaurant_id; a menu owned by another restaurant is
reported as not found.

A stored menu item is the parsed item's fields flattened, see
prepare_new_item / prepare_item_update.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from config import get_supabase_client, settings
from exceptions import (
    DatabaseError,
    MenuItemDataError,
    MenuItemNotFoundError,
    MenuItemVersionConflictError,
    MenuNotFoundError,
)
from models.menu import MenuResponse
from models.menu_upload import ItemType, ParsedMenuItem, WineServingOption, WineStyle
from services.field_validation_service import NAME_MAX_LENGTH, parse_flag, parse_number, validate_field
from utils.text_utils import normalize_category, split_list_text

logger = structlog.get_logger(__name__)

ITEM_TYPES = [t.value for t in ItemType]
WINE_STYLES = [s.value for s in WineStyle]
DIETARY_FLAGS = ("is_gluten_free", "is_vegan", "is_vegetarian")


# ===================
# PAYLOAD PREPARATION
# ===================

def _as_list(value: Any) -> list[str]:
    """List fields may arrive as a list or as comma separated text."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return split_list_text(str(value))


def _serving_options(value: Any) -> list[dict]:
    """Keep only complete options: a size and a non-negative price."""
    if not isinstance(value, list):
        return []

    options = []
    for raw in value:
        option = raw if isinstance(raw, WineServingOption) else WineServingOption.model_validate(raw)
        size = (option.size or "").strip()
        price = parse_number(option.price)
        if size and price is not None and price >= 0:
            options.append({"size": size, "price": price})
    return options


def _item_columns(item: ParsedMenuItem) -> dict[str, Any]:
    """
    Flatten a parsed item into menu_items columns.

    Raises:
        MenuItemDataError: If the item cannot be stored as-is
    """
    name = str(item.field_value("name", "")).strip()
    if not name:
        raise MenuItemDataError("Item name is required.", field="name")
    if len(name) > NAME_MAX_LENGTH:
        raise MenuItemDataError(
            f"Item name exceeds maximum length of {NAME_MAX_LENGTH} characters.",
            field="name"
        )

    raw_price = item.field_value("price")
    price = None
    if raw_price is not None and str(raw_price).strip() != "":
        price = parse_number(raw_price)
        if price is None or price < 0:
            raise MenuItemDataError("Invalid item price. Must be a non-negative number.", field="price")

    description = str(item.field_value("description", "")).strip()
    if len(description) > settings.max_item_description_length:
        raise MenuItemDataError(
            f"Item description exceeds maximum length of "
            f"{settings.max_item_description_length} characters.",
            field="description"
        )

    ingredients = _as_list(item.field_value("ingredients"))
    if len(ingredients) > settings.max_ingredients:
        raise MenuItemDataError(
            f"Number of ingredients exceeds maximum of {settings.max_ingredients}.",
            field="ingredients"
        )
    for ingredient in ingredients:
        if len(ingredient) > settings.max_ingredient_length:
            raise MenuItemDataError(
                f'Ingredient "{ingredient}" exceeds maximum length of '
                f"{settings.max_ingredient_length} characters.",
                field="ingredients"
            )

    item_type = str(item.field_value("item_type", ItemType.FOOD.value)).strip().lower()
    if item_type not in ITEM_TYPES:
        item_type = ItemType.FOOD.value

    columns: dict[str, Any] = {
        "name": name,
        "description": description or None,
        "price": price,
        "category": normalize_category(item.field_value("category")),
        "item_type": item_type,
        "ingredients": ingredients,
        **{flag: _flag(item, flag) for flag in DIETARY_FLAGS},
        "wine_style": None,
        "producer": None,
        "grape_variety": [],
        "vintage": None,
        "region": None,
        "serving_options": [],
        "suggested_pairings": [],
    }

    if item_type == ItemType.WINE.value:
        columns.update(_wine_columns(item))

    return columns


def _flag(item: ParsedMenuItem, field_name: str) -> bool:
    value = parse_flag(item.field_value(field_name))
    if value is None:
        raise MenuItemDataError(
            f"Invalid value for {field_name}. Must be yes or no.",
            field=field_name
        )
    return value


def _wine_columns(item: ParsedMenuItem) -> dict[str, Any]:
    raw_style = str(item.field_value("wine_style", "")).strip().lower()
    if raw_style and raw_style not in WINE_STYLES:
        raise MenuItemDataError(
            f'Invalid wine style: "{raw_style}". Must be one of: {", ".join(WINE_STYLES)}',
            field="wine_style"
        )

    vintage = None
    raw_vintage = item.field_value("wine_vintage")
    if raw_vintage is not None and str(raw_vintage).strip() != "":
        if validate_field("wine_vintage", raw_vintage).is_valid:
            vintage = int(parse_number(raw_vintage))
        else:
            logger.warning("invalid_vintage_dropped", item_id=item.id, vintage=raw_vintage)

    producer = str(item.field_value("wine_producer", "")).strip()
    region = str(item.field_value("wine_region", "")).strip()

    return {
        "wine_style": raw_style or WineStyle.OTHER.value,
        "producer": producer or None,
        "grape_variety": _as_list(item.field_value("wine_grape_variety")),
        "vintage": vintage,
        "region": region or None,
        "serving_options": _serving_options(item.field_value("wine_serving_options")),
        "suggested_pairings": _as_list(item.field_value("wine_pairings")),
    }


def prepare_new_item(item: ParsedMenuItem, menu_id: str, restaurant_id: str) -> dict[str, Any]:
    """Insert payload for a parsed item."""
    return {
        **_item_columns(item),
        "menu_id": menu_id,
        "restaurant_id": restaurant_id,
    }


def prepare_item_update(item: ParsedMenuItem, existing: dict[str, Any]) -> dict[str, Any]:
    """Only the columns whose value differs from the stored row."""
    columns = _item_columns(item)
    return {
        key: value for key, value in columns.items()
        if existing.get(key) != value
    }


class MenuService:
    """
    Menu store operations.

    Handles menus and their items, always scoped to a restaurant.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.menus_table = "menus"
        self.items_table = "menu_items"

    # ===================
    # MENUS
    # ===================

    def list_menus(self, restaurant_id: str) -> list[MenuResponse]:
        """Get all menus of a restaurant, by name."""
        logger.debug("listing_menus", restaurant_id=restaurant_id)

        try:
            result = (
                self.db.table(self.menus_table)
                .select("*")
                .eq("restaurant_id", restaurant_id)
                .order("name")
                .execute()
            )
            return [MenuResponse(**row) for row in result.data]

        except Exception as e:
            logger.error("list_menus_failed", restaurant_id=restaurant_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_menu(self, menu_id: str, restaurant_id: str) -> MenuResponse:
        """
        Get a menu owned by the restaurant.

        Raises:
            MenuNotFoundError: If menu doesn't exist or belongs to another restaurant
        """
        try:
            result = (
                self.db.table(self.menus_table)
                .select("*")
                .eq("id", menu_id)
                .eq("restaurant_id", restaurant_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_menu_failed", menu_id=menu_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise MenuNotFoundError(menu_id)
        return MenuResponse(**result.data[0])

    def find_menu_by_name(self, restaurant_id: str, name: str) -> Optional[MenuResponse]:
        try:
            result = (
                self.db.table(self.menus_table)
                .select("*")
                .eq("restaurant_id", restaurant_id)
                .eq("name", name)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("find_menu_failed", restaurant_id=restaurant_id, name=name, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return MenuResponse(**result.data[0])

    def create_menu(self, restaurant_id: str, name: str) -> MenuResponse:
        logger.info("creating_menu", restaurant_id=restaurant_id, name=name)

        now = datetime.now(timezone.utc).isoformat()
        try:
            result = (
                self.db.table(self.menus_table)
                .insert({
                    "restaurant_id": restaurant_id,
                    "name": name,
                    "is_active": True,
                    "created_at": now,
                    "updated_at": now,
                })
                .execute()
            )
        except Exception as e:
            logger.error("create_menu_failed", restaurant_id=restaurant_id, error=str(e))
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "No data returned")

        menu = MenuResponse(**result.data[0])
        logger.info("menu_created", menu_id=menu.id, name=menu.name)
        return menu

    # ===================
    # ITEMS
    # ===================

    def list_items(self, restaurant_id: str, menu_id: Optional[str] = None) -> list[dict]:
        """
        Get stored item rows in scope.

        Args:
            restaurant_id: Owning restaurant
            menu_id: Restrict to one menu (all menus of the restaurant if None)
        """
        try:
            query = (
                self.db.table(self.items_table)
                .select("*")
                .eq("restaurant_id", restaurant_id)
            )
            if menu_id:
                query = query.eq("menu_id", menu_id)
            result = query.order("name").execute()
            return result.data or []

        except Exception as e:
            logger.error(
                "list_menu_items_failed",
                restaurant_id=restaurant_id,
                menu_id=menu_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def get_item(self, item_id: str, restaurant_id: str) -> dict:
        """
        Raises:
            MenuItemNotFoundError: If item doesn't exist for this restaurant
        """
        try:
            result = (
                self.db.table(self.items_table)
                .select("*")
                .eq("id", item_id)
                .eq("restaurant_id", restaurant_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_menu_item_failed", item_id=item_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise MenuItemNotFoundError(item_id)
        return result.data[0]

    def insert_item(self, payload: dict[str, Any]) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        try:
            result = (
                self.db.table(self.items_table)
                .insert({**payload, "created_at": now, "updated_at": now})
                .execute()
            )
        except Exception as e:
            logger.error("insert_menu_item_failed", name=payload.get("name"), error=str(e))
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "No data returned")
        return result.data[0]

    def update_item(
        self,
        item_id: str,
        restaurant_id: str,
        changes: dict[str, Any],
        expected_version: Optional[str] = None
    ) -> dict:
        """
        Update an item, refusing to overwrite a newer version.

        Args:
            item_id: Stored item id
            restaurant_id: Owning restaurant
            changes: Columns to write
            expected_version: updated_at read during the conflict check;
                the write only applies while the row still carries it

        Raises:
            MenuItemNotFoundError: If item no longer exists
            MenuItemVersionConflictError: If item was modified since it was read
        """
        payload = {**changes, "updated_at": datetime.now(timezone.utc).isoformat()}

        try:
            query = (
                self.db.table(self.items_table)
                .update(payload)
                .eq("id", item_id)
                .eq("restaurant_id", restaurant_id)
            )
            if expected_version:
                query = query.eq("updated_at", expected_version)
            result = query.execute()
        except Exception as e:
            logger.error("update_menu_item_failed", item_id=item_id, error=str(e))
            raise DatabaseError("update", str(e))

        if result.data:
            return result.data[0]

        # Nothing matched: either gone or changed underneath us
        current = self.get_item(item_id, restaurant_id)
        logger.warning(
            "menu_item_version_conflict",
            item_id=item_id,
            expected_version=expected_version,
            actual_version=current.get("updated_at")
        )
        raise MenuItemVersionConflictError(item_id, expected_version, current.get("updated_at"))

    def delete_menu_items(self, menu_id: str, restaurant_id: str) -> int:
        """Delete every item of a menu. Returns the number deleted."""
        try:
            result = (
                self.db.table(self.items_table)
                .delete()
                .eq("menu_id", menu_id)
                .eq("restaurant_id", restaurant_id)
                .execute()
            )
        except Exception as e:
            logger.error("delete_menu_items_failed", menu_id=menu_id, error=str(e))
            raise DatabaseError("delete", str(e))

        deleted = len(result.data or [])
        logger.info("menu_items_deleted", menu_id=menu_id, count=deleted)
        return deleted


# Singleton instance
_menu_service: Optional[MenuService] = None


def get_menu_service() -> MenuService:
    """Get or create menu service instance."""
    global _menu_service
    if _menu_service is None:
        _menu_service = MenuService()
    return _menu_service
