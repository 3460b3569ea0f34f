"""Turn user inputs into extraction tasks.

An input is a file, a directory (walked recursively for script files), a
glob pattern, or an ``http(s)://`` URL. Remote scripts are downloaded into
a temporary directory that lives as long as the SourceSet; their task keeps
the URL as origin.
"""

import glob
import re
import tempfile
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import requests

from gqlhound.exceptions import TaskIOFailure
from gqlhound.extraction.syntax import SCRIPT_EXTENSIONS
from gqlhound.logging import logger
from gqlhound.models.operation import ExtractionTask

# Directories never walked for inputs
SKIP_DIRS = frozenset({
    # Dependencies
    "node_modules", "bower_components", "vendor",
    # Build outputs
    "dist", "build", ".next", ".turbo", "coverage", ".cache",
    # Python
    "venv", ".venv", "__pycache__",
    # VCS
    ".git", ".svn", ".hg",
})

DEFAULT_TIMEOUT = 30.0

_REMOTE = re.compile(r"^https?://", re.IGNORECASE)
_GLOB_CHARS = re.compile(r"[*?\[]")


def is_remote(locator: str) -> bool:
    return _REMOTE.match(locator) is not None


def read_batch_file(path: Path) -> list[str]:
    """Inputs listed one per line; blank lines and ``#`` comments are skipped."""
    entries = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            entries.append(line)
    return entries


def _skipped(path: Path) -> bool:
    return any(part in SKIP_DIRS for part in path.parts)


def walk_directory(directory: Path) -> list[Path]:
    """Script files under a directory, sorted, skipping SKIP_DIRS."""
    files = []
    for filepath in directory.rglob("*"):
        if not filepath.is_file():
            continue
        if filepath.suffix.lower() not in SCRIPT_EXTENSIONS:
            continue
        if _skipped(filepath.relative_to(directory)):
            continue
        files.append(filepath)
    return sorted(files)


def expand_local(pattern: str) -> list[Path]:
    """Files named by a local path, directory or glob pattern.

    Glob matches inside SKIP_DIRS are dropped; a file named explicitly is
    always kept, whatever its suffix.
    """
    path = Path(pattern)
    if path.is_file():
        return [path]
    if path.is_dir():
        return walk_directory(path)
    if not _GLOB_CHARS.search(pattern):
        return []
    matches = []
    for match in sorted(glob.glob(pattern, recursive=True)):
        candidate = Path(match)
        if candidate.is_file() and not _skipped(candidate):
            matches.append(candidate)
    return matches


class SourceSet:
    """Collects tasks for a list of inputs.

    Use as a context manager so downloaded files are removed afterwards.

    Args:
        timeout: Seconds to wait for each remote download.
        session: HTTP session used for downloads (created on demand).
        verbose: Log inputs that produced no task.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
        verbose: bool = False,
    ):
        self.timeout = timeout
        self.verbose = verbose
        self.tasks: list[ExtractionTask] = []
        self.errors: list[dict[str, str]] = []
        self._session = session
        self._owns_session = session is None
        self._tempdir: tempfile.TemporaryDirectory | None = None
        self._seen: set[str] = set()

    def __enter__(self) -> "SourceSet":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._tempdir is not None:
            self._tempdir.cleanup()
            self._tempdir = None
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None

    def add(self, locator: str) -> int:
        """Add tasks for one input. Returns how many tasks it produced."""
        if is_remote(locator):
            return self._add_remote(locator)

        added = 0
        for filepath in expand_local(locator):
            key = str(filepath.resolve())
            if key in self._seen:
                continue
            self._seen.add(key)
            self.tasks.append(ExtractionTask(source_locator=str(filepath), origin=str(filepath)))
            added += 1
        if not added and self.verbose:
            logger.warning("  No script files found for input: %s", locator)
        return added

    def add_all(self, locators: list[str]) -> int:
        return sum(self.add(locator) for locator in locators)

    def _add_remote(self, url: str) -> int:
        if url in self._seen:
            return 0
        self._seen.add(url)
        try:
            target = self.fetch(url)
        except TaskIOFailure as e:
            if self.verbose:
                logger.warning("  %s", e)
            self.errors.append({"error": str(e), "kind": e.kind, "file": url})
            return 0
        self.tasks.append(ExtractionTask(source_locator=str(target), origin=url))
        return 1

    def fetch(self, url: str) -> Path:
        """Download a remote script into the temp directory.

        The local file keeps the URL's suffix so the right grammar is used.

        Raises:
            TaskIOFailure: On connection errors or non-2xx responses.
        """
        if self._session is None:
            self._session = requests.Session()
        logger.info("  Fetching remote script %s", url)
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TaskIOFailure(f"failed to fetch {url}: {e}") from e

        if self._tempdir is None:
            self._tempdir = tempfile.TemporaryDirectory(prefix="gqlhound-")
        suffix = PurePosixPath(urlparse(url).path).suffix.lower()
        if suffix not in SCRIPT_EXTENSIONS:
            suffix = ".js"
        target = Path(self._tempdir.name) / f"remote_{len(self.tasks):04d}{suffix}"
        target.write_text(response.text, encoding="utf-8")
        return target
