"""
Unit tests for MenuService and item payload preparation.

Run: pytest tests/unit/test_menu_service.py -v
"""

import pytest

from exceptions import (
    DatabaseError,
    MenuItemDataError,
    MenuItemNotFoundError,
    MenuItemVersionConflictError,
    MenuNotFoundError,
)
from services import reconciliation_service as rs
from services.menu_service import (
    MenuService,
    get_menu_service,
    prepare_item_update,
    prepare_new_item,
)

from tests.factories import MenuFactory, MenuItemRowFactory, ParsedMenuItemFactory


class TestPrepareNewItem:
    """Tests for prepare_new_item()"""

    def test_food_payload(self):
        item = ParsedMenuItemFactory.create(
            name="  Caesar Salad ",
            price="9.50",
            category="starters",
            ingredients="romaine, parmesan , croutons",
            is_vegetarian=True
        )

        payload = prepare_new_item(item, "menu-1", "rest-1")

        assert payload["name"] == "Caesar Salad"
        assert payload["price"] == 9.5
        assert payload["category"] == "Starters"
        assert payload["ingredients"] == ["romaine", "parmesan", "croutons"]
        assert payload["is_vegetarian"] is True
        assert payload["menu_id"] == "menu-1"
        assert payload["restaurant_id"] == "rest-1"
        assert payload["wine_style"] is None

    def test_wine_payload(self):
        wine = ParsedMenuItemFactory.create_wine(
            name="Barolo",
            serving_options=[("Glass", 14), ("Bottle", "56"), ("", 30), ("Magnum", None)],
            wine_grape_variety="Nebbiolo",
            wine_vintage="2016",
            wine_pairings=["Risotto", "Ossobuco"]
        )

        payload = prepare_new_item(wine, "menu-1", "rest-1")

        assert payload["item_type"] == "wine"
        assert payload["wine_style"] == "still"
        assert payload["grape_variety"] == ["Nebbiolo"]
        assert payload["vintage"] == 2016
        assert payload["suggested_pairings"] == ["Risotto", "Ossobuco"]
        assert payload["serving_options"] == [
            {"size": "Glass", "price": 14.0},
            {"size": "Bottle", "price": 56.0},
        ]

    def test_wine_style_defaults_to_other(self):
        wine = ParsedMenuItemFactory.create_wine(name="House White", wine_style="")

        assert prepare_new_item(wine, "m", "r")["wine_style"] == "other"

    def test_invalid_wine_style_rejected(self):
        wine = ParsedMenuItemFactory.create_wine(name="House White", wine_style="rosé-ish")

        with pytest.raises(MenuItemDataError):
            prepare_new_item(wine, "m", "r")

    def test_invalid_vintage_dropped(self):
        wine = ParsedMenuItemFactory.create_wine(name="Mystery", wine_vintage="NV")

        assert prepare_new_item(wine, "m", "r")["vintage"] is None

    @pytest.mark.parametrize("vintage", [500, 2999, 2015.7, "2015.5"])
    def test_out_of_range_or_fractional_vintage_dropped(self, vintage):
        wine = ParsedMenuItemFactory.create_wine(name="Old", wine_vintage=vintage)

        assert not wine.fields["wine_vintage"].is_valid
        assert prepare_new_item(wine, "m", "r")["vintage"] is None

    def test_whole_float_vintage_stored_as_int(self):
        wine = ParsedMenuItemFactory.create_wine(name="Barolo", wine_vintage=2016.0)

        assert prepare_new_item(wine, "m", "r")["vintage"] == 2016

    @pytest.mark.parametrize("value,expected", [
        ("false", False),
        ("0", False),
        ("No", False),
        ("true", True),
        (" YES ", True),
        (1, True),
        (None, False),
    ])
    def test_dietary_flag_strings(self, value, expected):
        item = ParsedMenuItemFactory.create(name="Soup")
        rs.apply_field_edit(item, "is_vegan", value)

        assert prepare_new_item(item, "m", "r")["is_vegan"] is expected

    def test_unreadable_dietary_flag_rejected(self):
        item = ParsedMenuItemFactory.create(name="Soup")
        rs.apply_field_edit(item, "is_gluten_free", "maybe")

        assert not item.fields["is_gluten_free"].is_valid
        with pytest.raises(MenuItemDataError) as exc_info:
            prepare_new_item(item, "m", "r")

        assert exc_info.value.details == {"field": "is_gluten_free"}

    @pytest.mark.parametrize("overrides,message", [
        ({"name": ""}, "Item name is required."),
        ({"name": "Soup", "price": -1}, "Invalid item price. Must be a non-negative number."),
        ({"name": "Soup", "description": "x" * 501}, "description"),
        ({"name": "Soup", "ingredients": [f"i{n}" for n in range(51)]}, "ingredients"),
        ({"name": "Soup", "ingredients": ["x" * 101]}, "Ingredient"),
    ])
    def test_limits(self, overrides, message):
        item = ParsedMenuItemFactory.create(**overrides)

        with pytest.raises(MenuItemDataError) as exc_info:
            prepare_new_item(item, "m", "r")

        assert message in exc_info.value.message


class TestPrepareItemUpdate:
    """Tests for prepare_item_update()"""

    def test_only_changed_columns(self):
        existing = MenuItemRowFactory.create(name="Soup", price=8.0, category="Starters")
        item = ParsedMenuItemFactory.create(name="Soup", price=9.0, category="Starters")

        changes = prepare_item_update(item, existing)

        assert changes == {"price": 9.0}

    def test_identical_item_has_no_changes(self):
        existing = MenuItemRowFactory.create(name="Soup", price=8.0, category="Starters")
        item = ParsedMenuItemFactory.create(name="Soup", price=8.0, category="starters")

        assert prepare_item_update(item, existing) == {}


class TestMenus:
    """Tests for menu lookups"""

    def test_get_menu_scoped_to_restaurant(self, mock_db, mock_supabase, menu_row):
        service = MenuService()

        assert service.get_menu("menu-dinner", "rest-0001").name == "Dinner"
        with pytest.raises(MenuNotFoundError) as exc_info:
            service.get_menu("menu-dinner", "rest-9999")
        assert exc_info.value.status_code == 404

    def test_list_menus_by_name(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("menus", [
            MenuFactory.create(name="Lunch"),
            MenuFactory.create(name="Brunch"),
            MenuFactory.create(name="Other", restaurant_id="rest-9999"),
        ])

        menus = MenuService().list_menus("rest-0001")

        assert [m.name for m in menus] == ["Brunch", "Lunch"]

    def test_find_and_create(self, mock_db, mock_supabase):
        service = MenuService()
        assert service.find_menu_by_name("rest-0001", "Dinner") is None

        created = service.create_menu("rest-0001", "Dinner")

        assert service.find_menu_by_name("rest-0001", "Dinner").id == created.id

    def test_database_error_wrapped(self, mock_db, mock_supabase):
        mock_supabase.fail("menus", "select", "timeout")

        with pytest.raises(DatabaseError) as exc_info:
            MenuService().list_menus("rest-0001")

        assert "timeout" in exc_info.value.message

    def test_singleton(self, mock_db):
        assert get_menu_service() is get_menu_service()


class TestUpdateItem:
    """Tests for MenuService.update_item()"""

    def test_update_with_matching_version(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("menu_items", [
            MenuItemRowFactory.create(id="item-1", price=8.0, updated_at="v1"),
        ])

        row = MenuService().update_item("item-1", "rest-0001", {"price": 9.0}, expected_version="v1")

        assert row["price"] == 9.0
        assert row["updated_at"] != "v1"

    def test_stale_version_raises_conflict(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("menu_items", [
            MenuItemRowFactory.create(id="item-1", price=8.0, updated_at="v2"),
        ])

        with pytest.raises(MenuItemVersionConflictError) as exc_info:
            MenuService().update_item("item-1", "rest-0001", {"price": 9.0}, expected_version="v1")

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["actual_version"] == "v2"
        assert mock_supabase.rows("menu_items")[0]["price"] == 8.0

    def test_missing_item_raises_not_found(self, mock_db, mock_supabase):
        with pytest.raises(MenuItemNotFoundError):
            MenuService().update_item("gone", "rest-0001", {"price": 1.0}, expected_version="v1")

    def test_delete_menu_items(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("menu_items", [
            MenuItemRowFactory.create(menu_id="menu-a"),
            MenuItemRowFactory.create(menu_id="menu-a"),
            MenuItemRowFactory.create(menu_id="menu-b"),
        ])

        deleted = MenuService().delete_menu_items("menu-a", "rest-0001")

        assert deleted == 2
        assert [row["menu_id"] for row in mock_supabase.rows("menu_items")] == ["menu-b"]
