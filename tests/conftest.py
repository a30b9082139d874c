"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging
import sqlite3
from collections import deque

import pytest

from sqlai.llm.base import BaseLLMProvider
from sqlai.llm.models import LLMRequest, LLMResponse, LLMUsage
from sqlai.schema.models import ColumnInfo, ForeignKeyInfo, Schema, TableInfo

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires live MySQL/PostgreSQL databases)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires a live database)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """
    Capture logs at DEBUG for every test.

    This fixture runs automatically for all tests.
    """
    caplog.set_level(logging.DEBUG)
    yield


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache(monkeypatch):
    """
    Reload settings for every test and keep real API keys out of it.

    Runs automatically for all tests.
    """
    from sqlai.config import clear_settings_cache

    monkeypatch.delenv("LLM_API_KEY", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Mock LLM Provider
# ============================================================================


class ScriptedLLMProvider(BaseLLMProvider):
    """
    Provider returning queued replies, or raising queued exceptions.

    Every request is kept in ``requests`` for assertions.
    """

    def __init__(self):
        super().__init__(provider_name="mock", model="mock-model", timeout=5)
        self.replies: deque = deque()
        self.requests: list[LLMRequest] = []

    def set_response(self, *replies):
        """Queue replies; an Exception instance is raised instead of returned."""
        self.replies.extend(replies)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    @property
    def last_prompt(self) -> str:
        return self.requests[-1].messages[-1].content

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if not self.replies:
            raise AssertionError("ScriptedLLMProvider has no reply queued")
        reply = self.replies.popleft()
        if isinstance(reply, BaseException):
            raise reply
        return LLMResponse(
            content=reply,
            model="mock-model",
            usage=LLMUsage(prompt_tokens=1, completion_tokens=1, total_tokens=2),
            finish_reason="stop",
            provider="mock",
        )


@pytest.fixture
def mock_llm_provider():
    """
    Scripted LLM provider for pipeline tests.

    Usage:
        def test_generate(mock_llm_provider):
            mock_llm_provider.set_response("SELECT 1;")
    """
    return ScriptedLLMProvider()


# ============================================================================
# Schemas and Databases
# ============================================================================


@pytest.fixture
def sample_schema():
    """Three-table shop schema with foreign keys from Orders."""
    return Schema.from_tables(
        [
            TableInfo(
                name="Customers",
                columns=(
                    ColumnInfo(
                        name="CustomerID",
                        data_type="INTEGER",
                        is_nullable=False,
                        is_primary_key=True,
                    ),
                    ColumnInfo(name="Name", data_type="TEXT", is_nullable=False),
                    ColumnInfo(name="Country", data_type="TEXT"),
                ),
            ),
            TableInfo(
                name="Products",
                columns=(
                    ColumnInfo(
                        name="ProductID",
                        data_type="INTEGER",
                        is_nullable=False,
                        is_primary_key=True,
                    ),
                    ColumnInfo(name="ProductName", data_type="TEXT", is_nullable=False),
                    ColumnInfo(name="Price", data_type="REAL"),
                ),
            ),
            TableInfo(
                name="Orders",
                columns=(
                    ColumnInfo(
                        name="OrderID",
                        data_type="INTEGER",
                        is_nullable=False,
                        is_primary_key=True,
                    ),
                    ColumnInfo(name="CustomerID", data_type="INTEGER"),
                    ColumnInfo(name="ProductID", data_type="INTEGER"),
                    ColumnInfo(name="Quantity", data_type="INTEGER", default_value="1"),
                ),
                foreign_keys=(
                    ForeignKeyInfo(
                        column="CustomerID",
                        references_table="Customers",
                        references_column="CustomerID",
                    ),
                    ForeignKeyInfo(
                        column="ProductID",
                        references_table="Products",
                        references_column="ProductID",
                    ),
                ),
            ),
        ]
    )


SHOP_DDL = """
CREATE TABLE Customers (
    CustomerID INTEGER PRIMARY KEY,
    Name TEXT NOT NULL,
    Country TEXT
);
CREATE TABLE Products (
    ProductID INTEGER PRIMARY KEY,
    ProductName TEXT NOT NULL,
    Price REAL
);
CREATE TABLE Orders (
    OrderID INTEGER PRIMARY KEY,
    CustomerID INTEGER REFERENCES Customers(CustomerID),
    ProductID INTEGER REFERENCES Products(ProductID),
    Quantity INTEGER DEFAULT 1
);
CREATE VIEW BigOrders AS SELECT * FROM Orders WHERE Quantity > 5;
"""


@pytest.fixture
def sqlite_db(tmp_path):
    """
    File-backed SQLite shop database with a few rows per table.

    Returns the database path.
    """
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    try:
        conn.executescript(SHOP_DDL)
        conn.executemany(
            "INSERT INTO Customers VALUES (?, ?, ?)",
            [(1, "Ana", "Spain"), (2, "Ben", "UK"), (3, "Chen", "China")],
        )
        conn.executemany(
            "INSERT INTO Products VALUES (?, ?, ?)",
            [(1, "Tea", 4.5), (2, "Coffee", 7.0), (3, "Cocoa", 5.25)],
        )
        conn.executemany(
            "INSERT INTO Orders VALUES (?, ?, ?, ?)",
            [(1, 1, 1, 2), (2, 1, 2, 10), (3, 2, 3, 1), (4, 3, 1, 6)],
        )
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def writable_sqlite_db(sqlite_db):
    """Shop database plus one uploaded table, for tests that write."""
    conn = sqlite3.connect(sqlite_db)
    try:
        conn.execute("CREATE TABLE upload_sales_lx2k9 (Region TEXT, Amount REAL)")
        conn.execute("INSERT INTO upload_sales_lx2k9 VALUES ('North', 10.0)")
        conn.commit()
    finally:
        conn.close()
    return sqlite_db
