"""Pydantic models shared by the engine, pipeline and exporters."""

from gqlhound.models.operation import (
    CandidateOperation,
    ExtractionTask,
    OperationKind,
    ScanMetadata,
    ScanReport,
    SourceResult,
)

__all__ = [
    "CandidateOperation",
    "ExtractionTask",
    "OperationKind",
    "ScanMetadata",
    "ScanReport",
    "SourceResult",
]
