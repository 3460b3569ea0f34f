"""Tests for turning inputs into extraction tasks."""

from pathlib import Path

import pytest
import requests

from gqlhound.sources import (
    SourceSet,
    expand_local,
    is_remote,
    read_batch_file,
    walk_directory,
)


class FakeResponse:
    def __init__(self, text: str, status: int = 200):
        self.text = text
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


class FakeSession:
    """Stands in for requests.Session; records requested URLs."""

    def __init__(self, responses: dict[str, FakeResponse]):
        self.responses = responses
        self.requested = []

    def get(self, url: str, timeout: float) -> FakeResponse:
        self.requested.append((url, timeout))
        if url not in self.responses:
            raise requests.ConnectionError(f"cannot reach {url}")
        return self.responses[url]

    def close(self) -> None:
        pass


def _make_tree(root: Path) -> None:
    (root / "src" / "api").mkdir(parents=True)
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "src" / "app.js").write_text("app")
    (root / "src" / "api" / "client.ts").write_text("client")
    (root / "src" / "styles.css").write_text("css")
    (root / "node_modules" / "lib" / "index.js").write_text("lib")


class TestLocalInputs:
    """Tests for files, directories and globs."""

    def test_walk_skips_dependencies(self, temp_dir: Path) -> None:
        _make_tree(temp_dir)
        names = [p.relative_to(temp_dir).as_posix() for p in walk_directory(temp_dir)]
        assert names == ["src/api/client.ts", "src/app.js"]

    def test_glob_pattern(self, temp_dir: Path) -> None:
        _make_tree(temp_dir)
        matches = expand_local(str(temp_dir / "src" / "**" / "*.ts"))
        assert [p.name for p in matches] == ["client.ts"]

    def test_explicit_file_is_kept(self, temp_dir: Path) -> None:
        _make_tree(temp_dir)
        css = temp_dir / "src" / "styles.css"
        assert expand_local(str(css)) == [css]

    def test_nothing_matches(self, temp_dir: Path) -> None:
        assert expand_local(str(temp_dir / "absent.js")) == []

    def test_is_remote(self) -> None:
        assert is_remote("https://cdn.example.com/app.js")
        assert is_remote("HTTP://example.com")
        assert not is_remote("src/app.js")


class TestBatchFile:
    """Tests for batch input lists."""

    def test_skips_blanks_and_comments(self, temp_dir: Path) -> None:
        batch = temp_dir / "inputs.txt"
        batch.write_text("# bundles\nsrc/app.js\n\n  https://cdn.example.com/a.js  \n")
        assert read_batch_file(batch) == ["src/app.js", "https://cdn.example.com/a.js"]


class TestSourceSet:
    """Tests for collecting tasks across inputs."""

    def test_duplicates_collapse(self, temp_dir: Path) -> None:
        _make_tree(temp_dir)
        with SourceSet() as sources:
            added = sources.add_all([str(temp_dir), str(temp_dir / "src" / "app.js")])
        assert added == 2
        assert [Path(t.origin).name for t in sources.tasks] == ["client.ts", "app.js"]

    def test_remote_download(self) -> None:
        url = "https://cdn.example.com/static/main.ts?v=2"
        session = FakeSession({url: FakeResponse("const Q = gql`query Remote { r }`;")})
        with SourceSet(timeout=5.0, session=session) as sources:
            assert sources.add(url) == 1
            task = sources.tasks[0]
            local = Path(task.source_locator)
            assert task.origin == url
            assert local.suffix == ".ts"
            assert local.read_text() == "const Q = gql`query Remote { r }`;"
        assert session.requested == [(url, 5.0)]
        assert not local.exists()

    def test_remote_suffix_defaults_to_js(self) -> None:
        url = "https://example.com/bundle"
        with SourceSet(session=FakeSession({url: FakeResponse("x")})) as sources:
            sources.add(url)
            assert sources.tasks[0].source_locator.endswith(".js")

    def test_fetch_failures_become_errors(self) -> None:
        ok = "https://example.com/ok.js"
        missing = "https://example.com/missing.js"
        session = FakeSession({ok: FakeResponse("ok"), missing: FakeResponse("", status=404)})
        with SourceSet(session=session) as sources:
            added = sources.add_all([ok, missing, "https://unreachable.example.com/a.js"])
        assert added == 1
        assert [e["file"] for e in sources.errors] == [
            missing,
            "https://unreachable.example.com/a.js",
        ]
        assert {e["kind"] for e in sources.errors} == {"task_io"}

    def test_failures_are_quiet_unless_verbose(
        self, temp_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        missing = "https://example.com/missing.js"
        session = FakeSession({missing: FakeResponse("", status=404)})
        with caplog.at_level("WARNING", logger="gqlhound"):
            with SourceSet(session=session) as sources:
                sources.add_all([missing, str(temp_dir / "absent.js")])
        assert len(sources.errors) == 1
        assert caplog.records == []

    def test_verbose_logs_failures(self, temp_dir: Path, caplog: pytest.LogCaptureFixture) -> None:
        missing = "https://example.com/missing.js"
        session = FakeSession({missing: FakeResponse("", status=404)})
        with caplog.at_level("WARNING", logger="gqlhound"):
            with SourceSet(session=session, verbose=True) as sources:
                sources.add_all([missing, str(temp_dir / "absent.js")])
        warnings = [record.getMessage() for record in caplog.records if record.levelname == "WARNING"]
        assert len(warnings) == 2
        assert missing in warnings[0]
        assert "No script files found" in warnings[1]
