"""
Error taxonomy for the question-to-SQL pipeline.

Every failure that reaches the API boundary is one of these kinds. Each
carries a machine-readable ``kind`` and a human-readable message so callers
can tell a slow query from a bad one, or an unsafe statement from a flaky
AI provider.
"""

from typing import Any


class SQLAIError(Exception):
    """
    Base exception for pipeline failures.

    Attributes:
        kind: Stable identifier surfaced to API callers
        message: Error description
        context: Additional context for debugging
    """

    kind = "error"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "kind": self.kind,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class ValidationRejected(SQLAIError):
    """SQL failed a sanitizer stage. Never retried."""

    kind = "validation_rejected"

    def __init__(self, stage: str, reason: str, sql: str | None = None):
        self.stage = stage
        self.reason = reason
        self.sql = sql
        super().__init__(reason, context={"stage": stage})


class IntrospectionFailed(SQLAIError):
    """Schema metadata could not be read. Nothing is cached."""

    kind = "introspection_failed"


class GenerationFailed(SQLAIError):
    """The AI collaborator exhausted retries or returned nothing usable."""

    kind = "generation_failed"


class ExecutionTimeout(SQLAIError):
    """The query deadline expired before the database answered."""

    kind = "execution_timeout"

    def __init__(self, timeout_ms: int, sql: str | None = None):
        self.timeout_ms = timeout_ms
        self.sql = sql
        super().__init__(
            f"Query timed out after {timeout_ms}ms",
            context={"timeout_ms": timeout_ms},
        )


class ExecutionFailed(SQLAIError):
    """The backend rejected an already-validated statement."""

    kind = "execution_failed"


class InvalidUploadTable(SQLAIError):
    """A table operation named something other than an uploaded table."""

    kind = "invalid_upload_table"
