"""SQL safety validation."""

from sqlai.validation.sanitizer import (
    ALLOWED_LEADING_KEYWORDS,
    SanitizerStage,
    clean_sql,
    sanitize,
    validate_sql,
)

__all__ = [
    "ALLOWED_LEADING_KEYWORDS",
    "SanitizerStage",
    "clean_sql",
    "sanitize",
    "validate_sql",
]
