"""Stderr logging and progress reporting for scans.

stdout is reserved for the JSON report, so the ``gqlhound`` logger and the
tqdm bars both write to stderr.
"""

import logging
import os
import sys
import time
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from typing import Any

from tqdm import tqdm

# GQLHOUND_DISABLE_PROGRESS=1 or a non-TTY stderr turns bars off
_DISABLE_PROGRESS = (
    os.getenv("GQLHOUND_DISABLE_PROGRESS", "").lower() in ("1", "true", "yes")
    or not sys.stderr.isatty()
)

# Small runs finish before a plain-text progress line is worth printing
_QUIET_BELOW = 100

logger = logging.getLogger("gqlhound")
logger.setLevel(logging.INFO)

if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter("[gqlhound] %(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(handler)


def log_diagnostics(source: str, lines: Iterable[str]) -> None:
    """Emit per-input diagnostic lines collected by a worker."""
    for line in lines:
        logger.info("  %s: %s", source, line)


class TimingContext:
    """Wall-clock seconds spent in a ``log_operation`` block."""

    def __init__(self) -> None:
        self.elapsed: float = 0.0
        self._start = time.perf_counter()

    def stop(self) -> float:
        self.elapsed = time.perf_counter() - self._start
        return self.elapsed


@contextmanager
def log_operation(
    operation: str,
    details: dict[str, Any] | None = None,
) -> Generator[TimingContext, None, None]:
    """Log the start of a scan stage, then its duration or the error that ended it.

    Args:
        operation: Stage name, e.g. ``"extraction"``.
        details: Key/value pairs appended to the start line.
    """
    suffix = "".join(f" {key}={value}" for key, value in (details or {}).items())
    logger.info("▶ Starting %s%s", operation, suffix)

    timing = TimingContext()
    try:
        yield timing
    except Exception as e:
        logger.error("✗ %s failed after %.2fs: %s", operation, timing.stop(), e)
        raise
    logger.info("✓ Completed %s in %.2fs", operation, timing.stop())


class ProgressBar:
    """Progress for tasks that finish out of order.

    Draws a tqdm bar when stderr is a terminal. Otherwise large runs get a
    start line and a closing rate line instead.
    """

    def __init__(self, total: int, desc: str | None = None, unit: str = "it", disable: bool = False):
        self.total = total
        self.label = desc or "Progress"
        self.desc = desc
        self.unit = unit
        self.disable = disable
        self._bar: Any = None
        self._done = 0
        self._started = 0.0

    def _text_mode(self) -> bool:
        return not self.disable and self._bar is None and self.total > _QUIET_BELOW

    def __enter__(self) -> "ProgressBar":
        self._started = time.perf_counter()
        if not self.disable and not _DISABLE_PROGRESS:
            self._bar = tqdm(
                total=self.total,
                desc=f"  {self.desc}" if self.desc else None,
                unit=self.unit,
                file=sys.stderr,
                ncols=80,
                leave=False,
            )
        elif self._text_mode():
            logger.info("  %s: processing %d %s...", self.label, self.total, self.unit)
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        if self._bar is not None:
            self._bar.close()
        elif self._text_mode():
            seconds = time.perf_counter() - self._started
            logger.info(
                "  %s: completed %d %s in %.2fs (%.1f/s)",
                self.label,
                self._done,
                self.unit,
                seconds,
                self._done / seconds if seconds > 0 else 0.0,
            )

    def update(self, n: int = 1) -> None:
        self._done += n
        if self._bar is not None:
            self._bar.update(n)
