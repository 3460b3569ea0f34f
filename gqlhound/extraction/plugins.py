"""Extension point for additional tree visitors.

A plugin is any object with a ``name`` and a ``visit(tree, text, collector)``
method. The registry is process-wide and filled at init time from three
places: ``register_plugin()`` calls, the ``gqlhound.plugins`` entry point
group, and ``module:attribute`` specs from the config. Worker processes
resolve specs and entry points themselves. Plugins registered in code travel
to spawned workers as the import spec recorded at registration.
"""

import importlib
from importlib.metadata import entry_points
from typing import Protocol, runtime_checkable

from tree_sitter import Tree

from gqlhound.extraction.collector import OperationCollector

ENTRY_POINT_GROUP = "gqlhound.plugins"

_REGISTRY: dict[str, "ExtractorPlugin"] = {}
# Import spec each registered plugin can be rebuilt from in another process
_SPECS: dict[str, str | None] = {}
_ENTRY_POINTS_LOADED = False


@runtime_checkable
class ExtractorPlugin(Protocol):
    """Visitor that can add operations for one input.

    ``tree`` is None when the input did not parse cleanly. Operations must be
    added through ``collector`` so the signature dedup contract holds.
    """

    name: str

    def visit(self, tree: Tree | None, text: str, collector: OperationCollector) -> None: ...


def _spec_for(plugin: object) -> str | None:
    """``module:QualName`` of a plugin's class, if workers can import it."""
    cls = plugin if isinstance(plugin, type) else type(plugin)
    if "<locals>" in cls.__qualname__:
        return None
    return f"{cls.__module__}:{cls.__qualname__}"


def register_plugin(plugin: ExtractorPlugin | type, spec: str | None = None) -> ExtractorPlugin:
    """Add a plugin (instance or zero-argument class) to the registry.

    Re-registering a name replaces the earlier plugin.

    Args:
        plugin: Plugin instance or class.
        spec: Import spec that rebuilds the plugin in a worker process.
            Defaults to the plugin's class, instantiated without arguments.
    """
    if spec is None:
        spec = _spec_for(plugin)
    if isinstance(plugin, type):
        plugin = plugin()
    if not isinstance(plugin, ExtractorPlugin):
        raise TypeError(f"{plugin!r} does not implement ExtractorPlugin")
    _REGISTRY[plugin.name] = plugin
    _SPECS[plugin.name] = spec
    return plugin


def unregister_plugin(name: str) -> bool:
    """Remove a plugin by name. Returns True if it was registered."""
    _SPECS.pop(name, None)
    return _REGISTRY.pop(name, None) is not None


def registered_plugins() -> list[ExtractorPlugin]:
    return list(_REGISTRY.values())


def load_plugin_spec(spec: str) -> ExtractorPlugin:
    """Import and register a plugin from ``package.module:attribute``."""
    module_name, _, attribute = spec.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Plugin spec must look like 'module:attribute', got {spec!r}")
    target = importlib.import_module(module_name)
    for part in attribute.split("."):
        target = getattr(target, part)
    return register_plugin(target, spec=spec)


def load_entry_point_plugins() -> None:
    """Register plugins advertised by installed distributions (once per process)."""
    global _ENTRY_POINTS_LOADED
    if _ENTRY_POINTS_LOADED:
        return
    _ENTRY_POINTS_LOADED = True
    for entry_point in entry_points(group=ENTRY_POINT_GROUP):
        register_plugin(entry_point.load(), spec=entry_point.value)


def transferable_plugin_specs() -> list[str]:
    """Specs that rebuild every registered plugin in a worker process.

    Raises:
        ValueError: If a plugin was registered from a class workers cannot
            import, such as one defined inside a function.
    """
    specs = []
    for name in _REGISTRY:
        spec = _SPECS.get(name)
        if spec is None:
            raise ValueError(
                f"Plugin {name!r} has no importable spec; register it with spec='module:attribute' "
                "or run with concurrency 1"
            )
        specs.append(spec)
    return specs


def active_plugins(specs: tuple[str, ...] = ()) -> list[ExtractorPlugin]:
    """Plugins that should run for the current process and config."""
    load_entry_point_plugins()
    for spec in specs:
        load_plugin_spec(spec)
    return registered_plugins()
