"""Pytest configuration and shared fixtures."""

import os
import tempfile
from pathlib import Path

import pytest

# No tqdm bars in test output
os.environ.setdefault("GQLHOUND_DISABLE_PROGRESS", "1")

from gqlhound.config import ExtractorConfig  # noqa: E402
from gqlhound.extraction.collector import OperationCollector  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "js"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding the sample scripts."""
    return FIXTURES_DIR


@pytest.fixture
def collector() -> OperationCollector:
    """Empty collector for an in-memory input."""
    return OperationCollector("inline.js", "inline.js")


@pytest.fixture
def aggressive_config() -> ExtractorConfig:
    return ExtractorConfig(aggressive=True, concurrency=1, progress=False)


@pytest.fixture
def default_config() -> ExtractorConfig:
    return ExtractorConfig(concurrency=1, progress=False)


@pytest.fixture
def sample_typescript_file(temp_dir: Path) -> Path:
    """Create a sample TypeScript file with a tagged query and a fetch call."""
    filepath = temp_dir / "client.ts"
    filepath.write_text('''
import { gql } from "@apollo/client";

export const GET_USER = gql`
  query GetUser($id: ID!) {
    user(id: $id) {
      id
      name
    }
  }
`;

export async function saveUser(id: string, name: string): Promise<unknown> {
    const response = await fetch("/graphql", {
        method: "POST",
        body: JSON.stringify({
            query: "mutation SaveUser($id: ID!, $name: String) { saveUser(id: $id, name: $name) { ok } }",
            variables: { id: "42" },
        }),
    });
    return response.json();
}
''')
    return filepath
