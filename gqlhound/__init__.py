"""gqlhound - find GraphQL operations buried in JavaScript and TypeScript sources."""

# Load .env so GQLHOUND_CONCURRENCY, GQLHOUND_AGGRESSIVE, etc. are set
# for any entry point (CLI, pytest, scripts) that imports gqlhound.
from dotenv import load_dotenv

load_dotenv()

# Keep in sync with pyproject.toml [project] version.
__version__ = "0.3.0"


def scan(tasks, config=None):
    """Extract GraphQL operations from a collection of extraction tasks.

    Thin convenience wrapper around the pipeline for library callers.
    """
    from gqlhound.pipeline import extract_operations

    return extract_operations(tasks, config)
