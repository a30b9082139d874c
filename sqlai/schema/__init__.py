"""Normalized schema models, renderings and caching."""

from sqlai.schema.formatter import (
    format_schema_as_json,
    format_schema_detailed,
    format_schema_for_prompt,
)
from sqlai.schema.models import ColumnInfo, ForeignKeyInfo, Schema, TableInfo

__all__ = [
    "ColumnInfo",
    "ForeignKeyInfo",
    "TableInfo",
    "Schema",
    "format_schema_for_prompt",
    "format_schema_detailed",
    "format_schema_as_json",
]
