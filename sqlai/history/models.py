"""History entry, filter and statistics models."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_QUERY_LIMIT = 100


class HistoryEntry(BaseModel):
    """One question-to-SQL attempt. Never mutated after it is recorded."""

    id: int | None = Field(None, description="Assigned by the recorder")
    request_id: str | None = None
    question: str
    sql: str | None = Field(None, description="Generated statement, None when generation failed")
    success: bool
    row_count: int | None = None
    generation_time_ms: float | None = None
    execution_time_ms: float | None = None
    total_time_ms: float | None = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class HistoryFilter(BaseModel):
    """Optional criteria for listing history; timestamps are inclusive."""

    success: bool | None = None
    since: datetime | None = None
    until: datetime | None = None

    @field_validator("since", "until")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Naive bounds are read as UTC so they compare with entry timestamps."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    def matches(self, entry: HistoryEntry) -> bool:
        if self.success is not None and entry.success != self.success:
            return False
        if self.since is not None and entry.timestamp < self.since:
            return False
        if self.until is not None and entry.timestamp > self.until:
            return False
        return True


class HistoryStats(BaseModel):
    total: int
    successful: int
    failed: int
    success_rate: str = Field(..., description='Percentage such as "87.50%"')
    avg_generation_time_ms: int
    avg_execution_time_ms: int

    @classmethod
    def build(
        cls,
        total: int,
        successful: int,
        avg_generation_time_ms: float | None,
        avg_execution_time_ms: float | None,
    ) -> "HistoryStats":
        """Assemble stats; averages are over successful entries and rounded."""
        return cls(
            total=total,
            successful=successful,
            failed=total - successful,
            success_rate=f"{successful / total * 100:.2f}%" if total else "0%",
            avg_generation_time_ms=round(avg_generation_time_ms or 0),
            avg_execution_time_ms=round(avg_execution_time_ms or 0),
        )


def _mean(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


def compute_stats(entries: list[HistoryEntry]) -> HistoryStats:
    """Aggregate statistics over a list of entries."""
    successful = [entry for entry in entries if entry.success]
    return HistoryStats.build(
        total=len(entries),
        successful=len(successful),
        avg_generation_time_ms=_mean(
            [e.generation_time_ms for e in successful if e.generation_time_ms is not None]
        ),
        avg_execution_time_ms=_mean(
            [e.execution_time_ms for e in successful if e.execution_time_ms is not None]
        ),
    )
