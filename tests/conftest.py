"""
Shared test fixtures.

The Supabase double keeps rows in memory per table and honours the query
builder calls the entity store makes (select/insert/update/delete, eq,
in_, order, limit, single), so services can be tested end to end without
a database.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import copy
import importlib
import pytest
from unittest.mock import patch
from typing import Generator, Optional
from uuid import uuid4

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        elif isinstance(self.data, list):
            self.count = len(self.data)
        else:
            self.count = 1 if self.data else 0


class SimulatedDatabaseError(Exception):
    """Raised by the double when a failure has been injected."""


class MockSupabaseQuery:
    """Chainable query against one in-memory table."""

    def __init__(self, table: "MockSupabaseTable", operation: str, payload=None):
        self._table = table
        self._operation = operation
        self._payload = payload
        self._filters: list[tuple[str, str, object]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None
        self._is_single = False

    def eq(self, column, value):
        self._filters.append(("eq", column, value))
        return self

    def in_(self, column, values):
        self._filters.append(("in", column, list(values)))
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._is_single = True
        return self

    def _matches(self, row: dict) -> bool:
        for kind, column, value in self._filters:
            if kind == "eq" and row.get(column) != value:
                return False
            if kind == "in" and row.get(column) not in value:
                return False
        return True

    def _target_id(self) -> Optional[str]:
        for kind, column, value in self._filters:
            if kind == "eq" and column == "id":
                return value
        return None

    def execute(self) -> MockSupabaseResponse:
        self._table.check_failure(self._operation, self._target_id())

        if self._operation == "select":
            rows = [row for row in self._table.rows if self._matches(row)]
            if self._order:
                column, desc = self._order
                rows.sort(
                    key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else ""),
                    reverse=desc
                )
            if self._limit:
                rows = rows[:self._limit]
            data = copy.deepcopy(rows)

        elif self._operation == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            data = []
            for item in payload:
                row = copy.deepcopy(item)
                row.setdefault("id", str(uuid4()))
                self._table.rows.append(row)
                data.append(copy.deepcopy(row))

        elif self._operation == "update":
            data = []
            for row in self._table.rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self._payload))
                    data.append(copy.deepcopy(row))

        else:  # delete
            data = [copy.deepcopy(row) for row in self._table.rows if self._matches(row)]
            self._table.rows[:] = [row for row in self._table.rows if not self._matches(row)]

        if self._is_single:
            return MockSupabaseResponse(data=data[0] if data else None)
        return MockSupabaseResponse(data=data)


class MockSupabaseTable:
    """One table: its rows plus any injected failures."""

    def __init__(self, name: str):
        self.name = name
        self.rows: list[dict] = []
        self.failures: list[tuple[str, Optional[str]]] = []
        self.calls: list[str] = []

    def check_failure(self, operation: str, record_id: Optional[str]) -> None:
        self.calls.append(operation)
        for failing_operation, failing_id in self.failures:
            if failing_operation == operation and failing_id in (None, record_id):
                raise SimulatedDatabaseError(f"{operation} on {self.name} failed")

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self, "select")

    def insert(self, data):
        return MockSupabaseQuery(self, "insert", data)

    def update(self, data):
        return MockSupabaseQuery(self, "update", data)

    def delete(self):
        return MockSupabaseQuery(self, "delete")


class MockSupabaseClient:
    """In-memory Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}

    def table(self, name: str) -> MockSupabaseTable:
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable(name)
        return self._tables[name]

    def set_table_data(self, table_name: str, data: list):
        """Replace a table's rows."""
        self.table(table_name).rows = copy.deepcopy(data)

    def get_table_data(self, table_name: str) -> list:
        """Current rows of a table."""
        return self.table(table_name).rows

    def get_row(self, table_name: str, record_id: str) -> Optional[dict]:
        return next((r for r in self.table(table_name).rows if r.get("id") == record_id), None)

    def fail_on(self, table_name: str, operation: str, record_id: Optional[str] = None):
        """
        Make an operation on a table raise.

        With record_id, only writes targeting that id fail.
        """
        self.table(table_name).failures.append((operation, record_id))

    def write_count(self, table_name: str) -> int:
        """Insert, update and delete calls made against a table."""
        return sum(1 for c in self.table(table_name).calls if c != "select")


# ===================
# FIXTURES
# ===================

SERVICE_SINGLETONS = [
    ("services.order_service", "_order_service"),
    ("services.shipment_service", "_shipment_service"),
    ("services.product_service", "_product_service"),
    ("services.production_service", "_production_service"),
    ("services.forecast_service", "_forecast_service"),
    ("services.settings_service", "_settings_service"),
    ("services.magento_service", "_magento_service"),
    ("services.insight_service", "_insight_service"),
    ("services.report_service", "_report_service"),
    ("services.export_service", "_export_service"),
]


@pytest.fixture(autouse=True)
def reset_service_singletons():
    """Services hold their store clients; start every test without them."""
    yield
    for module_name, attribute in SERVICE_SINGLETONS:
        module = importlib.import_module(module_name)
        setattr(module, attribute, None)


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("orders", [OrderFactory.create()])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any EntityStore created inside the test talks to mock_supabase.
    """
    with patch("services.entity_store.get_supabase_client", return_value=mock_supabase):
        yield mock_supabase


@pytest.fixture
def delete_password():
    """Configure the shared delete password."""
    from config import settings

    with patch.object(settings, "order_delete_password", "letmein"):
        yield "letmein"


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client, mock_supabase):
            mock_supabase.set_table_data("orders", [...])
            response = test_client.get("/api/orders")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-Email": "packer@example.com"}
