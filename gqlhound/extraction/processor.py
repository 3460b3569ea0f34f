"""Per-input extraction: comment scan, structural pass, plugins, heuristics.

``process_task`` is the unit of work the pipeline dispatches. It never
raises: unreadable content and unexpected errors come back as error records
on the SourceResult.
"""

from pathlib import Path
from typing import Any

from tree_sitter import Tree

from gqlhound.config import ExtractorConfig
from gqlhound.exceptions import GqlHoundError, TaskIOFailure, WorkerFault
from gqlhound.extraction.collector import OperationCollector
from gqlhound.extraction.heuristic import run_heuristics, scan_comments
from gqlhound.extraction.plugins import active_plugins
from gqlhound.extraction.structural import StructuralExtractor
from gqlhound.extraction.syntax import language_for
from gqlhound.models.operation import ExtractionTask, SourceResult

# Files larger than this are read in chunks
STREAM_THRESHOLD = 1024 * 1024
STREAM_CHUNK_SIZE = 64 * 1024


def read_task_content(task: ExtractionTask) -> str:
    """Materialize the text of a task.

    In-memory content is returned as-is. Files above STREAM_THRESHOLD are
    read in STREAM_CHUNK_SIZE chunks; smaller ones in a single call. Both
    paths decode the same way, so the text is identical.

    Raises:
        TaskIOFailure: If the file is missing or unreadable.
    """
    if task.content is not None:
        return task.content

    path = Path(task.source_locator)
    try:
        size = path.stat().st_size
        with path.open("r", encoding="utf-8", errors="replace", newline="") as handle:
            if size <= STREAM_THRESHOLD:
                return handle.read()
            chunks = []
            while chunk := handle.read(STREAM_CHUNK_SIZE):
                chunks.append(chunk)
            return "".join(chunks)
    except OSError as e:
        raise TaskIOFailure(f"cannot read {task.source_locator}: {e.strerror or e}") from e


def error_record(error: GqlHoundError, task: ExtractionTask) -> dict[str, str]:
    return {"error": str(error), "kind": error.kind, "file": task.origin}


def extract_source(
    text: str,
    source: str,
    origin: str,
    config: ExtractorConfig,
) -> SourceResult:
    """Run every extraction strategy over one input's text.

    Order matters for the detection context that gets recorded: comments
    first, then the syntax tree and plugins, then text heuristics.
    """
    collector = OperationCollector(source, origin)
    diagnostics: list[str] = []

    comment_hits = scan_comments(text, collector)
    if comment_hits:
        diagnostics.append(f"comment scan: {comment_hits} comment(s) with operations")

    structural = StructuralExtractor(collector, aggressive=config.aggressive)
    outcome = structural.extract(text, language_for(source))
    diagnostics.extend(outcome.diagnostics)

    diagnostics.extend(run_plugins(outcome.tree, text, collector, config))

    diagnostics.extend(
        run_heuristics(
            text,
            collector,
            aggressive=config.aggressive,
            parse_failed=outcome.parse_failed,
        )
    )

    if collector.counts:
        counts = ", ".join(f"{context}={n}" for context, n in sorted(collector.counts.items()))
        diagnostics.append(f"{len(collector)} operation(s): {counts}")

    return SourceResult(
        source=source,
        origin=origin,
        operations=collector.operations,
        diagnostics=diagnostics,
    )


def run_plugins(
    tree: Tree | None,
    text: str,
    collector: OperationCollector,
    config: ExtractorConfig,
) -> list[str]:
    """Run registered plugins; each failure becomes a diagnostic line."""
    diagnostics = []
    try:
        plugins = active_plugins(config.plugins)
    except Exception as e:
        return [f"plugin loading failed: {type(e).__name__}: {e}"]

    for plugin in plugins:
        before = len(collector)
        try:
            plugin.visit(tree, text, collector)
        except Exception as e:
            diagnostics.append(f"plugin {plugin.name} failed: {type(e).__name__}: {e}")
            continue
        if len(collector) > before:
            diagnostics.append(f"plugin {plugin.name}: {len(collector) - before} operation(s)")
    return diagnostics


def process_task(task: ExtractionTask, config: ExtractorConfig) -> SourceResult:
    """Process one task, converting any failure into an error record."""
    try:
        text = read_task_content(task)
    except TaskIOFailure as e:
        return SourceResult(
            source=task.source_locator,
            origin=task.origin,
            errors=[error_record(e, task)],
        )

    try:
        return extract_source(text, task.source_locator, task.origin, config)
    except Exception as e:
        fault = WorkerFault(f"{type(e).__name__}: {e}")
        return SourceResult(
            source=task.source_locator,
            origin=task.origin,
            errors=[error_record(fault, task)],
        )


def _process_task_to_dict(task: ExtractionTask, config_data: dict[str, Any]) -> dict[str, Any]:
    """Worker-process entry point.

    Takes and returns plain data so both directions pickle cheaply across
    the spawn boundary.
    """
    config = ExtractorConfig.model_validate(config_data)
    return process_task(task, config).model_dump(mode="json")
