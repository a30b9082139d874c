"""Statement execution with row ceilings and deadlines."""

from sqlai.execution.executor import QueryExecutor, apply_row_limit

__all__ = ["QueryExecutor", "apply_row_limit"]
