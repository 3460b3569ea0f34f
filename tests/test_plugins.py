"""Tests for the extractor plugin registry."""

import pytest

from gqlhound.config import ExtractorConfig
from gqlhound.extraction import plugins
from gqlhound.extraction.collector import OperationCollector
from gqlhound.extraction.plugins import (
    ExtractorPlugin,
    active_plugins,
    load_plugin_spec,
    register_plugin,
    registered_plugins,
    transferable_plugin_specs,
    unregister_plugin,
)
from gqlhound.extraction.processor import extract_source


class PersistedQueryPlugin:
    """Finds operations that follow a ``PERSISTED:`` marker."""

    name = "persisted-queries"

    def __init__(self) -> None:
        self.trees = []

    def visit(self, tree, text: str, collector: OperationCollector) -> None:
        self.trees.append(tree)
        marker = "PERSISTED:"
        if marker in text:
            collector.add_matches(text.split(marker, 1)[1], self.name)


class BrokenPlugin:
    name = "broken"

    def visit(self, tree, text: str, collector: OperationCollector) -> None:
        raise ValueError("cannot handle this input")


class NotAPlugin:
    title = "missing name and visit"


@pytest.fixture(autouse=True)
def clean_registry(monkeypatch: pytest.MonkeyPatch):
    """Each test starts with an empty registry and no entry point scan."""
    monkeypatch.setattr(plugins, "_REGISTRY", {})
    monkeypatch.setattr(plugins, "_SPECS", {})
    monkeypatch.setattr(plugins, "_ENTRY_POINTS_LOADED", True)
    yield


class TestRegistry:
    """Tests for registering and resolving plugins."""

    def test_register_instance(self) -> None:
        plugin = register_plugin(PersistedQueryPlugin())
        assert isinstance(plugin, ExtractorPlugin)
        assert registered_plugins() == [plugin]

    def test_register_class(self) -> None:
        plugin = register_plugin(PersistedQueryPlugin)
        assert isinstance(plugin, PersistedQueryPlugin)

    def test_same_name_replaces(self) -> None:
        register_plugin(PersistedQueryPlugin())
        second = register_plugin(PersistedQueryPlugin())
        assert registered_plugins() == [second]

    def test_rejects_objects_without_visit(self) -> None:
        with pytest.raises(TypeError):
            register_plugin(NotAPlugin())

    def test_unregister(self) -> None:
        register_plugin(PersistedQueryPlugin())
        assert unregister_plugin("persisted-queries") is True
        assert unregister_plugin("persisted-queries") is False
        assert registered_plugins() == []

    def test_load_plugin_spec(self) -> None:
        plugin = load_plugin_spec(f"{__name__}:PersistedQueryPlugin")
        assert plugin.name == "persisted-queries"
        assert [p.name for p in active_plugins((f"{__name__}:PersistedQueryPlugin",))] == [
            "persisted-queries"
        ]

    def test_bad_spec(self) -> None:
        with pytest.raises(ValueError):
            load_plugin_spec("no_colon_here")

    def test_spec_recorded_from_class(self) -> None:
        register_plugin(PersistedQueryPlugin())
        assert transferable_plugin_specs() == [f"{PersistedQueryPlugin.__module__}:PersistedQueryPlugin"]

    def test_spec_recorded_from_loaded_spec(self) -> None:
        load_plugin_spec("plugin_samples:MarkerPlugin")
        assert transferable_plugin_specs() == ["plugin_samples:MarkerPlugin"]

    def test_explicit_spec_wins(self) -> None:
        register_plugin(PersistedQueryPlugin(), spec="plugin_samples:MarkerPlugin")
        assert transferable_plugin_specs() == ["plugin_samples:MarkerPlugin"]

    def test_local_class_cannot_be_transferred(self) -> None:
        class LocalPlugin:
            name = "local"

            def visit(self, tree, text: str, collector: OperationCollector) -> None:
                pass

        register_plugin(LocalPlugin)
        with pytest.raises(ValueError, match="local"):
            transferable_plugin_specs()

    def test_unregister_drops_spec(self) -> None:
        register_plugin(PersistedQueryPlugin())
        unregister_plugin("persisted-queries")
        assert transferable_plugin_specs() == []


class TestPluginsInProcessing:
    """Tests for plugins running inside the per-source processor."""

    def test_plugin_adds_operations_with_its_name(self) -> None:
        plugin = register_plugin(PersistedQueryPlugin())
        text = "const table = 1;\nexport default `PERSISTED: query Persisted { persisted }`;"
        result = extract_source(text, "p.js", "p.js", ExtractorConfig(concurrency=1))
        assert [(op.name, op.context) for op in result.operations] == [("Persisted", "persisted-queries")]
        assert plugin.trees[0] is not None

    def test_plugin_gets_no_tree_after_parse_failure(self) -> None:
        plugin = register_plugin(PersistedQueryPlugin())
        extract_source("function broken( {", "b.js", "b.js", ExtractorConfig(concurrency=1))
        assert plugin.trees == [None]

    def test_plugin_errors_become_diagnostics(self) -> None:
        register_plugin(BrokenPlugin())
        code = "const Q = gql`query StillFound { ok }`;"
        result = extract_source(code, "e.js", "e.js", ExtractorConfig(concurrency=1))
        assert [op.name for op in result.operations] == ["StillFound"]
        assert any("plugin broken failed" in line for line in result.diagnostics)
