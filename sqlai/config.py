"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from sqlai.config import get_settings

    settings = get_settings()
    print(settings.llm.model)
    print(settings.database.db_type)
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """AI text-completion provider configuration."""

    provider: Literal["openai", "anthropic"] = Field(
        default="openai",
        description="Provider SDK used for completions (openai covers any OpenAI-compatible API)",
    )
    api_key: str | None = Field(None, description="Provider API key")
    base_url: str | None = Field(
        default="https://api.groq.com/openai/v1",
        description="Base URL for OpenAI-compatible endpoints (None = SDK default)",
    )
    model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Model used for SQL generation",
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for SQL generation",
    )
    max_tokens: int = Field(
        default=2000,
        gt=0,
        le=16000,
        description="Maximum tokens per SQL generation response",
    )
    explain_max_tokens: int = Field(
        default=1000,
        gt=0,
        le=16000,
        description="Maximum tokens for result explanations",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts for retryable provider failures",
    )
    backoff_initial: float = Field(
        default=1.0,
        gt=0.0,
        description="First backoff delay in seconds (doubles per attempt)",
    )
    backoff_max: float = Field(
        default=10.0,
        gt=0.0,
        description="Upper bound for a single backoff delay in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v

    @model_validator(mode="after")
    def validate_backoff(self) -> "LLMSettings":
        """Ensure the backoff ceiling is not below the first delay."""
        if self.backoff_max < self.backoff_initial:
            raise ValueError(
                f"backoff_max ({self.backoff_max}) must be >= backoff_initial ({self.backoff_initial})"
            )
        return self


class DatabaseSettings(BaseSettings):
    """Target database configuration."""

    db_type: Literal["sqlite", "mysql", "postgresql"] = Field(
        default="sqlite",
        description="Target database backend",
        validation_alias="DB_TYPE",
    )
    url: str | None = Field(
        None,
        description="Connection URL for MySQL/PostgreSQL (mysql://..., postgresql://...)",
    )
    sqlite_path: Path = Field(
        default=Path("./data/northwind.db"),
        description="SQLite database file",
    )
    sqlite_readonly: bool = Field(
        default=True,
        description="Open the SQLite file read-only",
    )
    schema_name: str = Field(
        default="public",
        description="PostgreSQL schema to introspect",
    )
    pool_size: int = Field(
        default=10,
        gt=0,
        le=50,
        description="Connection pool size",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("db_type", mode="before")
    @classmethod
    def normalize_db_type(cls, v: str) -> str:
        """Accept the common 'postgres' spelling."""
        value = str(v).strip().lower()
        if value == "postgres":
            return "postgresql"
        return value

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | None) -> str | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v


class QuerySettings(BaseSettings):
    """Execution limits for generated and caller-supplied SQL."""

    timeout_ms: int = Field(
        default=30000,
        gt=0,
        description="Execution deadline in milliseconds",
    )
    max_result_rows: int = Field(
        default=1000,
        gt=0,
        le=100000,
        description="Row ceiling injected into statements without a LIMIT",
    )

    model_config = SettingsConfigDict(
        env_prefix="QUERY_",
        env_file=".env",
        extra="ignore",
    )


class SchemaCacheSettings(BaseSettings):
    """Schema cache sizing."""

    max_size: int = Field(default=50, gt=0, description="Maximum cached schemas")
    ttl_seconds: float = Field(default=300.0, gt=0, description="Default entry time-to-live")

    model_config = SettingsConfigDict(
        env_prefix="SCHEMA_CACHE_",
        env_file=".env",
        extra="ignore",
    )


class HistorySettings(BaseSettings):
    """Query history storage."""

    backend: Literal["memory", "postgres"] = Field(
        default="memory",
        description="History store implementation",
    )
    max_entries: int = Field(
        default=1000,
        gt=0,
        description="Retention bound for the in-memory store",
    )
    database_url: str | None = Field(
        None,
        description="PostgreSQL URL for the persisted store",
    )

    model_config = SettingsConfigDict(
        env_prefix="HISTORY_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_backend(self) -> "HistorySettings":
        """Persisted history needs somewhere to persist."""
        if self.backend == "postgres" and not self.database_url:
            raise ValueError("HISTORY_DATABASE_URL must be set when HISTORY_BACKEND=postgres")
        return self


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (llm, database, query, schema_cache,
    history, logging).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        API_HOST / API_PORT: API server bind address
        CORS_ORIGINS: Comma-separated allowed origins
        DB_TYPE: sqlite, mysql, postgres or postgresql
        LLM_*: AI provider configuration (see LLMSettings)
        DATABASE_*: Target database configuration (see DatabaseSettings)
        QUERY_*: Execution limits (see QuerySettings)
        SCHEMA_CACHE_*: Schema cache sizing (see SchemaCacheSettings)
        HISTORY_*: History storage (see HistorySettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.query.max_result_rows
        1000
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(default="SQL AI Engine", description="Application name")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, gt=0, le=65535, description="API server port")
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated CORS origins",
    )

    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    schema_cache: SchemaCacheSettings = Field(default_factory=SchemaCacheSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure()
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "db_type": self.database.db_type,
                "llm_provider": self.llm.provider,
                "llm_model": self.llm.model,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Singleton settings instance
    """
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=False)
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
