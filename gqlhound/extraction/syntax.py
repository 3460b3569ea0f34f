"""tree-sitter helpers for JavaScript/TypeScript sources.

Grammar loading, parser caching, node traversal and literal cooking shared
by the structural extractor and plugins.
"""

import re
from collections.abc import Iterator
from pathlib import PurePath

import tree_sitter_javascript as ts_javascript
import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Node, Parser, Tree

# File extension to grammar mapping; anything else uses the javascript
# grammar, which also understands JSX
EXTENSION_TO_LANGUAGE: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

SCRIPT_EXTENSIONS = frozenset(EXTENSION_TO_LANGUAGE)

# Wrapper nodes that don't change the value of the expression they hold
TRANSPARENT_TYPES = frozenset({
    "parenthesized_expression",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
    "type_assertion",
})

_LANGUAGES: dict[str, Language] = {}
_PARSERS: dict[str, Parser] = {}


def _get_language(name: str) -> Language:
    """Load (once) the tree-sitter grammar for a language name."""
    if name not in _LANGUAGES:
        if name == "typescript":
            _LANGUAGES[name] = Language(ts_typescript.language_typescript())
        elif name == "tsx":
            _LANGUAGES[name] = Language(ts_typescript.language_tsx())
        else:
            _LANGUAGES[name] = Language(ts_javascript.language())
    return _LANGUAGES[name]


def language_for(source_locator: str) -> str:
    """Pick the grammar for an input from its locator's suffix."""
    suffix = PurePath(source_locator.split("?", 1)[0]).suffix.lower()
    return EXTENSION_TO_LANGUAGE.get(suffix, "javascript")


def get_parser(language: str) -> Parser:
    """Cached parser per grammar (one set per worker process)."""
    if language not in _PARSERS:
        _PARSERS[language] = Parser(_get_language(language))
    return _PARSERS[language]


def parse_source(source: bytes, language: str) -> Tree:
    """Parse source bytes. tree-sitter always returns a tree; check has_error."""
    return get_parser(language).parse(source)


# =============================================================================
# Traversal
# =============================================================================


def iter_nodes(root: Node) -> Iterator[Node]:
    """Pre-order walk over every node under root.

    Uses an explicit stack: bundled code nests far deeper than the
    recursion limit.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def get_child_by_field(node: Node, field_name: str) -> Node | None:
    return node.child_by_field_name(field_name)


def argument_nodes(arguments: Node) -> list[Node]:
    """Named argument expressions of an ``arguments`` node, comments dropped."""
    return [child for child in arguments.named_children if child.type != "comment"]


def unwrap(node: Node | None) -> Node | None:
    """Strip parentheses and TypeScript assertions around an expression."""
    while node is not None and node.type in TRANSPARENT_TYPES:
        inner = [child for child in node.named_children if child.type != "comment"]
        if not inner:
            return None
        node = inner[0]
    return node


def node_text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace")


def callee_name(call: Node) -> str | None:
    """Identifier of a call target: ``fetch`` for ``fetch()``, ``post`` for ``axios.post()``."""
    func = unwrap(get_child_by_field(call, "function"))
    if func is None:
        return None
    if func.type == "identifier":
        return node_text(func)
    if func.type == "member_expression":
        prop = get_child_by_field(func, "property")
        if prop is not None:
            return node_text(prop)
    return None


def property_key(pair: Node) -> str | None:
    """Key of an object ``pair`` as a plain string, if it is static."""
    key = get_child_by_field(pair, "key")
    if key is None:
        return None
    if key.type in ("property_identifier", "identifier", "number"):
        return node_text(key)
    if key.type == "string":
        return string_value(key)
    return None


SCOPE_TYPES = frozenset({
    "program",
    "statement_block",
    "function_declaration",
    "function_expression",
    "function",
    "arrow_function",
    "method_definition",
    "class_body",
    "for_statement",
    "for_in_statement",
})


def enclosing_scope(node: Node) -> Node | None:
    """Nearest ancestor that opens a lexical scope."""
    current = node.parent
    while current is not None:
        if current.type in SCOPE_TYPES:
            return current
        current = current.parent
    return None


# =============================================================================
# Literal values
# =============================================================================

_ESCAPE = re.compile(
    r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|.)",
    re.DOTALL,
)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
    "\n": "",
    "\r\n": "",
}


def _cook_escape(match: re.Match[str]) -> str:
    seq = match.group(1)
    if seq[0] in "ux" and len(seq) > 1:
        code = int(seq[2:-1] if seq.startswith("u{") else seq[1:], 16)
        # Lone surrogates and out-of-range code points stay escaped
        if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
            return match.group(0)
        return chr(code)
    return _SIMPLE_ESCAPES.get(seq, seq)


def cook(raw: str) -> str:
    """Decode JavaScript escape sequences in literal source text."""
    if "\\" not in raw:
        return raw
    return _ESCAPE.sub(_cook_escape, raw)


def string_value(node: Node) -> str:
    """Cooked value of a ``string`` node (quotes removed)."""
    text = node_text(node)
    if len(text) >= 2 and text[0] in "'\"" and text[-1] == text[0]:
        text = text[1:-1]
    return cook(text)


def template_static_text(node: Node) -> str:
    """Cooked static text of a ``template_string``; ``${...}`` holes are dropped."""
    source = node.text
    base = node.start_byte
    cursor = 1  # skip opening backtick
    parts: list[bytes] = []
    for child in node.children:
        if child.type == "template_substitution":
            parts.append(source[cursor:child.start_byte - base])
            cursor = child.end_byte - base
    end = len(source) - 1 if source.endswith(b"`") else len(source)
    parts.append(source[cursor:end])
    return cook(b"".join(parts).decode("utf-8", errors="replace"))
