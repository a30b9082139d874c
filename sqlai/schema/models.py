"""
Normalized schema models.

Backends report metadata differently; connectors translate what they read
into these models so callers never see which catalog a schema came from.
Instances are frozen: a schema is only ever produced by introspection.
"""

from pydantic import BaseModel, ConfigDict, Field


class ColumnInfo(BaseModel):
    """Information about a database column."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Declared type as reported by the backend")
    is_nullable: bool = Field(default=True, description="Whether column can be NULL")
    is_primary_key: bool = Field(default=False, description="Is part of primary key")
    default_value: str | None = Field(None, description="Default value if any")

    model_config = ConfigDict(frozen=True)


class ForeignKeyInfo(BaseModel):
    """Directed foreign-key edge from a column to a referenced column."""

    column: str = Field(..., description="Source column")
    references_table: str = Field(..., description="Referenced table")
    references_column: str = Field(..., description="Referenced column")

    model_config = ConfigDict(frozen=True)


class TableInfo(BaseModel):
    """Information about a base table."""

    name: str = Field(..., description="Table name")
    columns: tuple[ColumnInfo, ...] = Field(..., description="Columns in ordinal order")
    foreign_keys: tuple[ForeignKeyInfo, ...] = Field(default=(), description="Foreign keys")

    model_config = ConfigDict(frozen=True)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]


class Schema(BaseModel):
    """Mapping of table name to table descriptor, in introspection order."""

    tables: dict[str, TableInfo] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_tables(cls, tables: list[TableInfo]) -> "Schema":
        return cls(tables={table.name: table for table in tables})

    @property
    def table_names(self) -> list[str]:
        return list(self.tables)

    def simplified(self) -> dict[str, list[str]]:
        """Table name to column names, the shape reported back as ``schema_used``."""
        return {name: table.column_names for name, table in self.tables.items()}

    def __len__(self) -> int:
        return len(self.tables)
