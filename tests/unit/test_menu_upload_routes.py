"""
API tests for the menu upload, conflict check and import routes.

Run: pytest tests/unit/test_menu_upload_routes.py -v
"""

import pytest

from config import settings
from services import menu_preview_service
from services.menu_import_service import MenuImportService
from services.menu_preview_service import MenuPreviewService

from tests.factories import (
    ExtractedMenuFactory,
    FakeMenuExtractor,
    MenuFactory,
    MenuItemRowFactory,
)

BASE = "/api/menus/upload"
PDF_BYTES = b"%PDF-1.4 fake menu"


@pytest.fixture
def fake_extraction():
    """Menu with two starters and a wine."""
    extracted = ExtractedMenuFactory.create(menu_name="Dinner Menu", items=[
        ExtractedMenuFactory.item(name="Soup", category="starters"),
        ExtractedMenuFactory.item(name="Bruschetta", category="Starters"),
        ExtractedMenuFactory.wine(name="Chianti Classico"),
    ])
    menu_preview_service._menu_preview_service = MenuPreviewService(
        extractor=FakeMenuExtractor(extracted)
    )


@pytest.fixture
def uploaded(test_client, fake_extraction) -> dict:
    response = test_client.post(
        f"{BASE}/preview",
        files={"file": ("dinner.pdf", PDF_BYTES, "application/pdf")}
    )
    assert response.status_code == 200
    return response.json()["preview"]


class TestUploadPreview:
    """POST /preview"""

    def test_upload_returns_preview(self, test_client, fake_extraction):
        response = test_client.post(
            f"{BASE}/preview",
            files={"file": ("dinner.pdf", PDF_BYTES, "application/pdf")}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["expires_in_minutes"] == settings.preview_ttl_minutes
        preview = body["preview"]
        assert preview["parsed_menu_name"] == "Dinner Menu"
        assert preview["detected_categories"] == ["Starters", "Wine List"]
        assert preview["summary"]["total_items_parsed"] == 3

    def test_non_pdf_rejected(self, test_client, fake_extraction):
        response = test_client.post(
            f"{BASE}/preview",
            files={"file": ("menu.txt", b"Soup 8", "text/plain")}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_UPLOAD"

    def test_get_and_discard(self, test_client, uploaded):
        preview_id = uploaded["preview_id"]

        assert test_client.get(f"{BASE}/preview/{preview_id}").status_code == 200
        assert test_client.delete(f"{BASE}/preview/{preview_id}").status_code == 204
        missing = test_client.get(f"{BASE}/preview/{preview_id}")
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "PREVIEW_NOT_FOUND"


class TestWorkspaceRoutes:
    """Item and category editing"""

    def test_grouped_view(self, test_client, uploaded):
        response = test_client.get(f"{BASE}/preview/{uploaded['preview_id']}/grouped")

        assert response.status_code == 200
        body = response.json()
        assert body["category_order"] == ["Starters", "Wine List", "Uncategorized"]
        wine_group = body["groups"][1]
        assert [i["fields"]["name"]["value"] for i in wine_group["wine_items"]] == ["Chianti Classico"]

    def test_edit_field(self, test_client, uploaded):
        item_id = uploaded["parsed_items"][0]["id"]

        response = test_client.patch(
            f"{BASE}/preview/{uploaded['preview_id']}/items/{item_id}/fields/price",
            json={"value": -4}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "error_client_validation"
        assert body["fields"]["price"]["is_valid"] is False

    def test_edit_unknown_field(self, test_client, uploaded):
        item_id = uploaded["parsed_items"][0]["id"]

        response = test_client.patch(
            f"{BASE}/preview/{uploaded['preview_id']}/items/{item_id}/fields/calories",
            json={"value": 1}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "UNKNOWN_FIELD"

    def test_rename_collision_reported(self, test_client, uploaded):
        response = test_client.put(
            f"{BASE}/preview/{uploaded['preview_id']}/categories/Starters",
            json={"new_name": "wine list"}
        )

        assert response.status_code == 200
        assert response.json()["success"] is False

    def test_delete_requires_confirmation(self, test_client, uploaded):
        url = f"{BASE}/preview/{uploaded['preview_id']}/categories/Starters"

        first = test_client.delete(url)
        second = test_client.delete(url, params={"confirm": True})

        assert first.json()["requires_confirmation"] is True
        assert second.json()["success"] is True
        assert "Starters" not in second.json()["categories"]

    def test_move_and_toggle(self, test_client, uploaded):
        preview_id = uploaded["preview_id"]
        item_id = uploaded["parsed_items"][0]["id"]
        test_client.post(f"{BASE}/preview/{preview_id}/categories", json={"name": "specials"})

        moved = test_client.post(
            f"{BASE}/preview/{preview_id}/items/{item_id}/move",
            json={"category": "Specials"}
        )
        toggled = test_client.post(f"{BASE}/preview/{preview_id}/categories/Specials/toggle")

        assert moved.json()["success"] is True
        assert toggled.json()["message"] == "collapsed"

    def test_serving_option_lifecycle(self, test_client, uploaded):
        preview_id = uploaded["preview_id"]
        wine_id = uploaded["parsed_items"][2]["id"]
        base = f"{BASE}/preview/{preview_id}/items/{wine_id}/serving-options"

        created = test_client.post(base, json={"size": "Carafe", "price": 30})
        option_id = created.json()["id"]
        updated = test_client.patch(f"{base}/{option_id}", json={"price": -1})
        removed = test_client.delete(f"{base}/{option_id}")

        assert created.status_code == 201
        assert updated.json()["is_valid_price"] is False
        assert removed.status_code == 200
        assert removed.json()["status"] == "edited"

    def test_serving_option_on_food_rejected(self, test_client, uploaded):
        item_id = uploaded["parsed_items"][0]["id"]

        response = test_client.post(
            f"{BASE}/preview/{uploaded['preview_id']}/items/{item_id}/serving-options",
            json={"size": "Bowl", "price": 5}
        )

        assert response.status_code == 422


class TestConflictAndImportRoutes:
    """Conflict check, finalize and job lookup"""

    def test_full_flow(self, test_client, mock_supabase, uploaded):
        mock_supabase.set_table_data("menus", [
            MenuFactory.create(id="menu-dinner", restaurant_id="rest-0001", name="Dinner"),
        ])
        mock_supabase.set_table_data("menu_items", [
            MenuItemRowFactory.create(id="item-soup", name="SOUP", category="Starters", price=8.0),
        ])
        preview_id = uploaded["preview_id"]

        check = test_client.post(f"{BASE}/conflicts/process", json={
            "restaurant_id": "rest-0001",
            "target_menu_id": "menu-dinner",
            "preview_id": preview_id
        })
        assert check.status_code == 200
        assert check.json()["summary"]["potential_updates_identified"] == 1
        assert check.json()["summary"]["new_items_confirmed"] == 2

        result = test_client.post(f"{BASE}/import/finalize", json={
            "restaurant_id": "rest-0001",
            "target_menu_id": "menu-dinner",
            "preview_id": preview_id
        })

        assert result.status_code == 200
        body = result.json()
        assert body["overall_status"] == "completed"
        assert body["items_created"] == 2
        assert body["items_updated"] == 1
        stored = {row["id"]: row for row in mock_supabase.rows("menu_items")}
        assert len(stored) == 3
        assert stored["item-soup"]["name"] == "Soup"

    def test_conflict_check_requires_known_menu(self, test_client, mock_supabase):
        response = test_client.post(f"{BASE}/conflicts/process", json={
            "restaurant_id": "rest-0001",
            "target_menu_id": "missing",
            "items_to_process": []
        })

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "MENU_NOT_FOUND"

    def test_background_job_flow(self, test_client, mock_supabase, uploaded, monkeypatch):
        """TestClient runs background tasks before returning the response."""
        monkeypatch.setattr(settings, "async_import_threshold", 1)
        preview_id = uploaded["preview_id"]
        test_client.post(f"{BASE}/conflicts/process", json={
            "restaurant_id": "rest-0001",
            "preview_id": preview_id
        })

        pending = test_client.post(f"{BASE}/import/finalize", json={
            "restaurant_id": "rest-0001",
            "preview_id": preview_id
        }).json()

        assert pending["job_status"] == "pending"
        assert pending["overall_status"] is None

        job = test_client.get(f"{BASE}/import/job/{pending['job_id']}").json()
        assert job["job_status"] == "completed"
        assert job["overall_status"] == "completed"
        assert job["items_created"] == 3

        report = test_client.get(f"{BASE}/import/job/{pending['job_id']}/error-report")
        assert report.status_code == 200
        assert report.headers["content-type"].startswith("text/csv")
        assert report.text == "ItemID,ItemName,ActionAttempted,ErrorReason\n"

    def test_unknown_job(self, test_client):
        response = test_client.get(f"{BASE}/import/job/nope")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "IMPORT_JOB_NOT_FOUND"

    def test_unexpected_finalize_error(self, test_client, mock_supabase, monkeypatch):
        def boom(self, request, background_tasks=None):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(MenuImportService, "finalize", boom)

        response = test_client.post(f"{BASE}/import/finalize", json={
            "restaurant_id": "rest-0001",
            "items_to_import": []
        })

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Failed to finalize import"


class TestMenusRoute:
    """GET /api/menus"""

    def test_list_menus(self, test_client, mock_supabase):
        mock_supabase.set_table_data("menus", [MenuFactory.create(name="Lunch")])

        response = test_client.get("/api/menus", params={"restaurant_id": "rest-0001"})

        assert response.status_code == 200
        assert response.json()["total"] == 1


class TestHealth:
    """GET /health"""

    def test_healthy_reports_table_counts(self, test_client, mock_supabase):
        mock_supabase.set_table_data("menus", [MenuFactory.create(), MenuFactory.create()])

        body = test_client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["database"]["menus_count"] == 2
        assert body["database"]["menu_import_jobs_count"] == 0

    def test_degraded_when_database_fails(self, test_client, mock_supabase):
        mock_supabase.fail("menus", "select", "connection reset")

        body = test_client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["database"] == {"status": "unhealthy", "error": "connection reset"}
