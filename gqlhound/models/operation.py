"""Data models for extracted operations, tasks and scan reports.

Pydantic models are used for everything that is serialized or crosses the
worker process boundary; the task record is a plain frozen dataclass.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

OperationKind = Literal["query", "mutation", "subscription", "fragment", "unknown"]


class CandidateOperation(BaseModel):
    """A piece of source text believed to hold one GraphQL operation."""

    model_config = ConfigDict(frozen=True)

    raw_text: str = Field(description="Extracted operation text (after repair, if any)")
    signature: str = Field(description="Whitespace-normalized raw_text; the dedup key")
    name: str = Field(description="Declared operation name or generated placeholder")
    kind: OperationKind = Field(default="unknown", description="Leading operation keyword")
    variables: dict[str, Any] = Field(
        default_factory=dict, description="Variable name -> placeholder value"
    )
    source: str = Field(description="Concrete input that yielded the text (file or temp path)")
    origin: str = Field(description="Logical input identity (URL, matched path, batch entry)")
    context: str = Field(description="Extraction strategy that produced the match")


@dataclass(frozen=True)
class ExtractionTask:
    """One unit of work: an input's locator, origin and (optionally) content.

    When ``content`` is None the worker reads ``source_locator`` itself,
    streaming large files.
    """

    source_locator: str
    origin: str
    content: str | None = None


class SourceResult(BaseModel):
    """Result message a worker sends back for one task."""

    source: str
    origin: str
    operations: list[CandidateOperation] = Field(default_factory=list)
    errors: list[dict[str, str]] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(e.get("kind") in ("task_io", "worker_fault") for e in self.errors)


class ScanMetadata(BaseModel):
    """Metadata about one pipeline run."""

    analyzer: str = Field(default="gqlhound")
    version: str = Field(description="gqlhound version that produced the report")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    task_count: int = Field(default=0, description="Tasks handed to the pipeline")
    completed_count: int = Field(default=0, description="Tasks finished (success or failure)")
    failed_count: int = Field(default=0, description="Tasks dropped after an error")
    concurrency: int = Field(default=1, description="Worker pool size actually used")
    aggressive: bool = Field(default=False)


class ScanReport(BaseModel):
    """Operations found by a run plus run metadata and task errors."""

    operations: list[CandidateOperation] = Field(default_factory=list)
    metadata: ScanMetadata
    errors: list[dict[str, str]] = Field(
        default_factory=list, description="Errors encountered during extraction"
    )
