"""Bounded-concurrency extraction across many inputs.

Tasks are handed to a fixed pool of worker processes, at most ``pool size``
at a time. Each worker returns one plain-dict SourceResult; the
orchestrating thread alone merges operations into the global map, first
writer wins per signature. A pool of one runs tasks in-process.
"""

import multiprocessing
from collections import deque
from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from concurrent.futures.process import BrokenProcessPool
from enum import Enum

from gqlhound import __version__
from gqlhound.config import ExtractorConfig
from gqlhound.exceptions import WorkerFault
from gqlhound.extraction.plugins import transferable_plugin_specs
from gqlhound.extraction.processor import _process_task_to_dict, error_record, process_task
from gqlhound.logging import ProgressBar, log_diagnostics, log_operation, logger
from gqlhound.models.operation import (
    CandidateOperation,
    ExtractionTask,
    ScanMetadata,
    ScanReport,
    SourceResult,
)

# Use spawn context to avoid fork-related deadlocks with tree-sitter
_MP_CONTEXT = multiprocessing.get_context("spawn")


class PipelineState(Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    DONE = "done"


class ExtractionPipeline:
    """Runs extraction tasks and aggregates their operations.

    The final operation set depends only on the inputs and the config, never
    on concurrency or completion order. Which input a duplicated operation
    is attributed to can vary between runs when the pool has more than one
    worker.

    Example:
        pipeline = ExtractionPipeline(ExtractorConfig(concurrency=8))
        operations = pipeline.run(tasks)
        report = pipeline.report()
    """

    def __init__(self, config: ExtractorConfig | None = None):
        self.config = config or ExtractorConfig()
        self.state = PipelineState.IDLE
        self.task_count = 0
        self.completed = 0
        self.failed = 0
        self.pool_size = 0
        self.errors: list[dict[str, str]] = []
        self._operations: dict[str, CandidateOperation] = {}

    @property
    def operations(self) -> list[CandidateOperation]:
        return list(self._operations.values())

    def run(self, tasks: Iterable[ExtractionTask]) -> list[CandidateOperation]:
        """Process every task and return the deduplicated operations.

        A task that can't be read or crashes its worker contributes nothing;
        the run itself does not fail.
        """
        queue = deque(tasks)
        self.task_count = len(queue)
        self.completed = 0
        self.failed = 0
        self.errors = []
        self._operations = {}
        self.pool_size = min(self.config.concurrency, self.task_count)
        worker_config = self._worker_config() if self.pool_size > 1 else None

        with log_operation(
            "extraction",
            {"tasks": self.task_count, "workers": self.pool_size, "aggressive": self.config.aggressive},
        ):
            with ProgressBar(
                total=self.task_count,
                desc="Extracting",
                unit="files",
                disable=not self.config.progress,
            ) as pbar:
                self.state = PipelineState.DISPATCHING
                if self.pool_size <= 1:
                    self._run_sequential(queue, pbar)
                else:
                    while queue:
                        self._run_pool(queue, pbar, worker_config)

        self.state = PipelineState.DONE
        summary = "  extraction: %d operations from %d/%d tasks"
        args = [len(self._operations), self.completed, self.task_count]
        if self.config.verbose:
            summary += " (%d failed)"
            args.append(self.failed)
        logger.info(summary, *args)
        return self.operations

    def _run_sequential(self, queue: deque[ExtractionTask], pbar: ProgressBar) -> None:
        while queue:
            task = queue.popleft()
            if not queue:
                self.state = PipelineState.DRAINING
            self._absorb(process_task(task, self.config))
            pbar.update()

    def _worker_config(self) -> dict:
        """Config sent to workers, carrying plugins registered in this process.

        Raises:
            ValueError: If a registered plugin cannot be rebuilt in a worker.
        """
        specs = dict.fromkeys((*self.config.plugins, *transferable_plugin_specs()))
        return self.config.model_copy(update={"plugins": tuple(specs)}).model_dump()

    def _run_pool(self, queue: deque[ExtractionTask], pbar: ProgressBar, config_data: dict) -> None:
        """Drive one executor until the queue drains or the pool breaks.

        When a worker process dies every in-flight task is recorded as a
        WorkerFault and the caller starts a fresh executor for whatever is
        still queued.
        """
        pending: dict[Future, ExtractionTask] = {}
        broken = False

        with ProcessPoolExecutor(max_workers=self.pool_size, mp_context=_MP_CONTEXT) as executor:
            while queue or pending:
                while queue and not broken and len(pending) < self.pool_size:
                    task = queue.popleft()
                    try:
                        future = executor.submit(_process_task_to_dict, task, config_data)
                    except BrokenProcessPool as e:
                        broken = True
                        self._absorb(self._fault(task, e))
                        pbar.update()
                        break
                    pending[future] = task

                if not queue:
                    self.state = PipelineState.DRAINING
                if not pending:
                    break

                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    task = pending.pop(future)
                    try:
                        result = SourceResult.model_validate(future.result())
                    except BrokenProcessPool as e:
                        broken = True
                        result = self._fault(task, e)
                    except Exception as e:
                        result = self._fault(task, e)
                    self._absorb(result)
                    pbar.update()

                if broken and not pending:
                    break

        if broken and queue and self.config.verbose:
            logger.warning("  worker pool broke; restarting for %d queued tasks", len(queue))

    def _fault(self, task: ExtractionTask, error: BaseException) -> SourceResult:
        fault = WorkerFault(f"{type(error).__name__}: {error}")
        return SourceResult(
            source=task.source_locator,
            origin=task.origin,
            errors=[error_record(fault, task)],
        )

    def _absorb(self, result: SourceResult) -> None:
        """Merge one task's result into the global map (orchestrator only)."""
        self.completed += 1
        if result.failed:
            self.failed += 1
        self.errors.extend(result.errors)

        for operation in result.operations:
            self._operations.setdefault(operation.signature, operation)

        if self.config.verbose:
            lines = list(result.diagnostics)
            lines.extend(f"{error['kind']}: {error['error']}" for error in result.errors)
            log_diagnostics(result.origin, lines)

    def report(self) -> ScanReport:
        """Operations and run metadata of the last run."""
        return ScanReport(
            operations=self.operations,
            metadata=ScanMetadata(
                version=__version__,
                task_count=self.task_count,
                completed_count=self.completed,
                failed_count=self.failed,
                concurrency=self.pool_size,
                aggressive=self.config.aggressive,
            ),
            errors=list(self.errors),
        )


def extract_operations(
    tasks: Iterable[ExtractionTask],
    config: ExtractorConfig | None = None,
) -> list[CandidateOperation]:
    """Extract deduplicated operations from a collection of tasks."""
    return ExtractionPipeline(config).run(tasks)


__all__ = [
    "ExtractionPipeline",
    "PipelineState",
    "extract_operations",
]
