"""Serialize scan results: JSON report and Postman v2.1 collection."""

import json
from pathlib import Path
from typing import Any

from gqlhound.models.operation import CandidateOperation, ScanReport

POSTMAN_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"
ENDPOINT_VARIABLE = "GRAPHQL_ENDPOINT"


def operation_record(operation: CandidateOperation) -> dict[str, Any]:
    """One operation as written to the JSON report."""
    return {
        "name": operation.name,
        "kind": operation.kind,
        "operation": operation.raw_text,
        "signature": operation.signature,
        "variables": operation.variables,
        "source": operation.source,
        "origin": operation.origin,
        "context": operation.context,
    }


def report_to_dict(report: ScanReport) -> dict[str, Any]:
    return {
        "operations": [operation_record(op) for op in report.operations],
        "errors": report.errors,
        "metadata": report.metadata.model_dump(mode="json"),
    }


def build_postman_collection(
    operations: list[CandidateOperation],
    name: str = "GraphQL Operations",
) -> dict[str, Any]:
    """Postman collection with one GraphQL POST request per operation.

    The endpoint is left as the ``{{GRAPHQL_ENDPOINT}}`` collection variable
    so the collection can be pointed at any server after import.
    """
    endpoint = f"{{{{{ENDPOINT_VARIABLE}}}}}"
    items = []
    for operation in operations:
        items.append({
            "name": operation.name,
            "request": {
                "method": "POST",
                "header": [
                    {"key": "Content-Type", "value": "application/json"},
                    {"key": "Accept", "value": "application/json"},
                ],
                "body": {
                    "mode": "graphql",
                    "graphql": {
                        "query": operation.raw_text,
                        "variables": json.dumps(operation.variables, indent=2),
                    },
                },
                "url": {"raw": endpoint, "host": [endpoint]},
            },
        })
    return {
        "info": {"name": name, "schema": POSTMAN_SCHEMA},
        "variable": [{"key": ENDPOINT_VARIABLE, "value": "", "type": "string"}],
        "item": items,
    }


def postman_path(output: Path) -> Path:
    """``ops.json`` -> ``ops.postman.json``."""
    output = Path(output)
    if output.suffix == ".json":
        return output.with_suffix(".postman.json")
    return output.with_name(output.name + ".postman.json")


def write_json(data: Any, path: Path) -> Path:
    path = Path(path)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path
