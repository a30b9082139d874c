"""Schema renderings for prompts, terminals and JSON responses."""

from typing import Any

from sqlai.schema.models import Schema


def format_schema_for_prompt(schema: Schema) -> str:
    """
    Compact listing injected into the SQL generation prompt.

    One line per table with its column names, followed by an indented hint
    per foreign key::

        - Orders: OrderID, CustomerID, OrderDate
          └─ CustomerID → Customers.CustomerID
    """
    lines = []
    for table in schema.tables.values():
        lines.append(f"- {table.name}: {', '.join(table.column_names)}")
        for fk in table.foreign_keys:
            lines.append(f"  └─ {fk.column} → {fk.references_table}.{fk.references_column}")
    return "\n".join(lines)


def format_schema_detailed(schema: Schema) -> str:
    """Human-readable listing with types, key markers and nullability."""
    lines = []
    for table in schema.tables.values():
        lines.append("")
        lines.append(table.name)
        lines.append("-" * 40)
        for column in table.columns:
            marker = "PK " if column.is_primary_key else "   "
            nullable = "" if column.is_nullable else " NOT NULL"
            lines.append(f"{marker}{column.name} ({column.data_type}{nullable})")
        if table.foreign_keys:
            lines.append("")
            lines.append("  Foreign Keys:")
            for fk in table.foreign_keys:
                lines.append(
                    f"    {fk.column} → {fk.references_table}.{fk.references_column}"
                )
    return "\n".join(lines)


def format_schema_as_json(schema: Schema) -> dict[str, Any]:
    """Plain-dict rendering: table -> {columns: [...], foreign_keys: [...]}."""
    return {
        name: {
            "columns": [column.model_dump() for column in table.columns],
            "foreign_keys": [fk.model_dump() for fk in table.foreign_keys],
        }
        for name, table in schema.tables.items()
    }
