"""Extraction engine: everything that runs for a single input.

Modules:
- signature: canonical signatures and operation heads
- variables: placeholder values for declared variables
- patterns: ordered text patterns plus clip/repair post-processing
- syntax: tree-sitter grammar loading and node helpers
- structural: syntax-tree visitor over the supported node shapes
- heuristic: comment, string literal and whole-file text scans
- plugins: registry for additional visitors
- collector: per-input operation map
- processor: runs all of the above for one task
"""

from gqlhound.extraction.collector import OperationCollector
from gqlhound.extraction.plugins import ExtractorPlugin, register_plugin, unregister_plugin
from gqlhound.extraction.processor import extract_source, process_task
from gqlhound.extraction.signature import normalize

__all__ = [
    "ExtractorPlugin",
    "OperationCollector",
    "extract_source",
    "normalize",
    "process_task",
    "register_plugin",
    "unregister_plugin",
]
