"""
Shared test fixtures.

The Supabase double keeps rows per table and applies eq/neq/in_ filters,
ordering and limits, so services can be exercised end to end without a
database.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded on import; provide placeholders for tests
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import copy
import pytest
from unittest.mock import patch
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator, Optional
from uuid import uuid4


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: Optional[int] = None):
        self.data = data if data is not None else []
        self.count = count


class MockSupabaseQuery:
    """Chainable query that runs against a MockSupabaseTable on execute()."""

    def __init__(self, table: "MockSupabaseTable", operation: str = "select", payload: Any = None):
        self._table = table
        self._operation = operation
        self._payload = payload
        self._filters: list[Callable[[dict], bool]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None
        self._range: Optional[tuple[int, int]] = None
        self._is_single = False
        self._count: Optional[str] = None

    def select(self, *args, count: Optional[str] = None, **kwargs):
        self._count = count
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._is_single = True
        return self

    def _matches(self) -> list[dict]:
        return [row for row in self._table.rows if all(f(row) for f in self._filters)]

    def execute(self) -> MockSupabaseResponse:
        self._table.client.check_failure(self._table.name, self._operation)

        if self._operation == "insert":
            inserted = [self._table.insert_row(row) for row in self._payload]
            return MockSupabaseResponse(data=copy.deepcopy(inserted), count=len(inserted))

        matched = self._matches()

        if self._operation == "update":
            for row in matched:
                row.update(copy.deepcopy(self._payload))
                if "updated_at" not in self._payload:
                    row["updated_at"] = self._table.client.next_timestamp()
            return MockSupabaseResponse(data=copy.deepcopy(matched), count=len(matched))

        if self._operation == "delete":
            self._table.rows = [row for row in self._table.rows if row not in matched]
            return MockSupabaseResponse(data=copy.deepcopy(matched), count=len(matched))

        total = len(matched)
        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda row: (row.get(column) is None, row.get(column) or ""), reverse=desc)
        if self._range:
            start, end = self._range
            matched = matched[start:end + 1]
        if self._limit is not None:
            matched = matched[:self._limit]

        data = copy.deepcopy(matched)
        if self._is_single:
            return MockSupabaseResponse(data=data[0] if data else None, count=1 if data else 0)
        return MockSupabaseResponse(data=data, count=total if self._count else None)


class MockSupabaseTable:
    """One in-memory table."""

    def __init__(self, client: "MockSupabaseClient", name: str, rows: Optional[list] = None):
        self.client = client
        self.name = name
        self.rows: list[dict] = copy.deepcopy(rows or [])

    def insert_row(self, row: dict) -> dict:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid4()))
        now = self.client.next_timestamp()
        stored.setdefault("created_at", now)
        stored.setdefault("updated_at", now)
        self.rows.append(stored)
        return stored

    def select(self, *args, **kwargs) -> MockSupabaseQuery:
        return MockSupabaseQuery(self).select(*args, **kwargs)

    def insert(self, data) -> MockSupabaseQuery:
        rows = data if isinstance(data, list) else [data]
        return MockSupabaseQuery(self, "insert", rows)

    def update(self, data) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, "update", data)

    def delete(self) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, "delete")


class MockSupabaseClient:
    """Mock Supabase client holding named tables."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}
        self._failures: dict[tuple[str, str], str] = {}
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def next_timestamp(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def set_table_data(self, table_name: str, data: list, count: Optional[int] = None):
        """Configure rows for a table."""
        self._tables[table_name] = MockSupabaseTable(self, table_name, data)

    def rows(self, table_name: str) -> list[dict]:
        """Current rows of a table."""
        return self.table(table_name).rows

    def fail(self, table_name: str, operation: str, message: str = "connection reset"):
        """Make every `operation` on `table_name` raise."""
        self._failures[(table_name, operation)] = message

    def check_failure(self, table_name: str, operation: str):
        message = self._failures.get((table_name, operation))
        if message:
            raise Exception(message)

    def table(self, name: str) -> MockSupabaseTable:
        """Get (or create) a table."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable(self, name)
        return self._tables[name]


# ===================
# FIXTURES
# ===================

def _reset_services():
    from services import (
        conflict_resolver_service,
        import_job_service,
        menu_extraction_service,
        menu_import_service,
        menu_preview_service,
        menu_service,
        preview_cache_service,
        preview_workspace_service,
    )

    menu_service._menu_service = None
    import_job_service._import_job_service = None
    conflict_resolver_service._conflict_resolver_service = None
    menu_import_service._menu_import_service = None
    menu_preview_service._menu_preview_service = None
    menu_extraction_service._menu_extraction_service = None
    preview_workspace_service._preview_workspace_service = None
    preview_cache_service.clear_previews()


@pytest.fixture(autouse=True)
def reset_services() -> Generator:
    """Fresh service singletons and an empty preview cache for every test."""
    _reset_services()
    yield
    _reset_services()


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("menu_items", [
                {"id": "1", "name": "Caesar Salad", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("menus", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.menu_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.import_job_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def restaurant_id() -> str:
    return "rest-0001"


@pytest.fixture
def menu_row(mock_supabase, restaurant_id) -> dict:
    """An existing "Dinner" menu owned by the test restaurant."""
    from tests.factories import MenuFactory

    menu = MenuFactory.create(id="menu-dinner", restaurant_id=restaurant_id, name="Dinner")
    mock_supabase.set_table_data("menus", [menu])
    return menu


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client, mock_supabase):
            mock_supabase.set_table_data("menus", [...])
            response = test_client.get("/api/menus?restaurant_id=r1")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
