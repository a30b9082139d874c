"""
Unit tests for configuration module.

Tests settings loading, validation, nested configuration, and caching.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from sqlai.config import (
    DatabaseSettings,
    HistorySettings,
    LLMSettings,
    QuerySettings,
    SchemaCacheSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)


class TestLLMSettings:
    """Test AI provider configuration."""

    def test_defaults(self):
        settings = LLMSettings()

        assert settings.provider == "openai"
        assert settings.api_key is None
        assert settings.base_url == "https://api.groq.com/openai/v1"
        assert settings.model == "llama-3.3-70b-versatile"
        assert settings.temperature == 0.1
        assert settings.max_tokens == 2000
        assert settings.timeout == 30
        assert settings.max_retries == 3

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "gsk-test")
        monkeypatch.setenv("LLM_PROVIDER", "anthropic")
        monkeypatch.setenv("LLM_MAX_TOKENS", "4000")

        settings = LLMSettings()

        assert settings.api_key == "gsk-test"
        assert settings.provider == "anthropic"
        assert settings.max_tokens == 4000

    def test_empty_base_url_means_sdk_default(self, monkeypatch):
        monkeypatch.setenv("LLM_BASE_URL", "")

        assert LLMSettings().base_url is None

    def test_temperature_validation(self, monkeypatch):
        monkeypatch.setenv("LLM_TEMPERATURE", "3.0")

        with pytest.raises(ValidationError, match="less than or equal to 2"):
            LLMSettings()

    def test_backoff_ceiling_below_initial(self, monkeypatch):
        monkeypatch.setenv("LLM_BACKOFF_INITIAL", "5")
        monkeypatch.setenv("LLM_BACKOFF_MAX", "1")

        with pytest.raises(ValidationError, match="backoff_max"):
            LLMSettings()


class TestDatabaseSettings:
    """Test target database configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DB_TYPE", raising=False)

        settings = DatabaseSettings()

        assert settings.db_type == "sqlite"
        assert settings.sqlite_path == Path("./data/northwind.db")
        assert settings.sqlite_readonly is True

    @pytest.mark.parametrize(
        "value,expected",
        [("postgres", "postgresql"), ("PostgreSQL", "postgresql"), ("MySQL", "mysql")],
    )
    def test_db_type_normalized(self, monkeypatch, value, expected):
        monkeypatch.setenv("DB_TYPE", value)

        assert DatabaseSettings().db_type == expected

    def test_unknown_db_type(self, monkeypatch):
        monkeypatch.setenv("DB_TYPE", "oracle")

        with pytest.raises(ValidationError):
            DatabaseSettings()

    def test_url_and_pool(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost:5432/shop")
        monkeypatch.setenv("DATABASE_POOL_SIZE", "20")

        settings = DatabaseSettings()

        assert settings.url == "postgresql://u:p@localhost:5432/shop"
        assert settings.pool_size == 20


class TestLimits:
    def test_query_defaults(self):
        settings = QuerySettings()

        assert settings.timeout_ms == 30000
        assert settings.max_result_rows == 1000

    def test_row_ceiling_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("QUERY_MAX_RESULT_ROWS", "0")

        with pytest.raises(ValidationError):
            QuerySettings()

    def test_schema_cache_defaults(self):
        settings = SchemaCacheSettings()

        assert settings.max_size == 50
        assert settings.ttl_seconds == 300.0


class TestHistorySettings:
    def test_memory_default(self):
        settings = HistorySettings()

        assert settings.backend == "memory"
        assert settings.max_entries == 1000

    def test_postgres_requires_url(self, monkeypatch):
        monkeypatch.setenv("HISTORY_BACKEND", "postgres")
        monkeypatch.delenv("HISTORY_DATABASE_URL", raising=False)

        with pytest.raises(ValidationError, match="HISTORY_DATABASE_URL"):
            HistorySettings()


class TestSettings:
    """Test main settings and caching."""

    def test_nested_settings(self):
        settings = Settings()

        assert isinstance(settings.llm, LLMSettings)
        assert isinstance(settings.database, DatabaseSettings)
        assert settings.query.max_result_rows == 1000

    def test_cors_origin_list(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000, https://app.example.com,")

        settings = Settings()

        assert settings.cors_origin_list == ["http://localhost:3000", "https://app.example.com"]

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_clear_settings_cache(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("QUERY_TIMEOUT_MS", "5000")

        clear_settings_cache()
        second = get_settings()

        assert second is not first
        assert second.query.timeout_ms == 5000
