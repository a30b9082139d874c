"""
API test fixtures.

The app's lifespan is not entered; app_state is filled with a service wired
to a real SQLite database and a scripted provider, and restored afterwards.
"""

import pytest
from fastapi.testclient import TestClient

from sqlai.api.main import app, app_state
from sqlai.connectors.factory import create_connector
from sqlai.history.recorder import InMemoryHistoryRecorder
from sqlai.llm.retry import RetryPolicy
from sqlai.schema.cache import SchemaCache
from sqlai.service import SQLService
from sqlai.uploads import UploadedTables


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
async def wired_state(writable_sqlite_db, mock_llm_provider):
    connector = create_connector(database_type="sqlite", sqlite_path=writable_sqlite_db)
    await connector.connect()
    cache = SchemaCache()
    history = InMemoryHistoryRecorder()
    service = SQLService(
        connector=connector,
        cache=cache,
        history=history,
        llm=mock_llm_provider,
        retry_policy=RetryPolicy(max_attempts=1),
        max_rows=100,
        timeout_ms=5000,
    )

    original_state = app_state.copy()
    app_state.update(
        connector=connector,
        cache=cache,
        history=history,
        llm=mock_llm_provider,
        service=service,
        uploads=UploadedTables(connector, cache),
    )
    try:
        yield app_state
    finally:
        app_state.update(original_state)
        await connector.close()
