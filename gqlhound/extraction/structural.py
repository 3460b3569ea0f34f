"""Syntax-tree extraction of GraphQL operations.

Walks a tree-sitter tree once and dispatches every node to one of a closed
set of shape handlers:

- TaggedLiteral: ``gql`...```, ``graphql`...```, ``apollo`...```
- CallExpression: HTTP client calls such as ``fetch(url, {body})`` and
  ``axios.post(url, {query, variables})``
- VariableBinding: ``const Q = gql`...``` (recorded as ``variable-binding``)
- StringLiteral: any other string/template literal, aggressive mode only;
  JSON request bodies in a literal are decoded before matching

Identifiers used as request payloads are resolved through a scope index
built from every ``variable_declarator`` in the file.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tree_sitter import Node, Tree

from gqlhound.exceptions import ParseFailure
from gqlhound.extraction.collector import OperationCollector
from gqlhound.extraction.patterns import passes_keyword_screen
from gqlhound.extraction.payload import OPERATION_KEYS
from gqlhound.extraction.syntax import (
    argument_nodes,
    callee_name,
    enclosing_scope,
    get_child_by_field,
    iter_nodes,
    node_text,
    parse_source,
    property_key,
    string_value,
    template_static_text,
    unwrap,
)

GQL_TAGS = frozenset({"gql", "graphql", "apollo"})

HTTP_CLIENTS = frozenset({"fetch", "axios", "request", "post", "ajax"})

# Config object members that carry the request payload
BODY_KEYS = ("body", "data")

# Identifier -> binding -> identifier chains are followed at most this far
MAX_RESOLVE_DEPTH = 8

# Enclosing scopes searched for a binding, innermost first
MAX_SCOPE_DEPTH = 64

_MISSING = object()

# Nodes that name a binding: `x` and the `query` in `{query}`
REFERENCE_TYPES = frozenset({"identifier", "shorthand_property_identifier"})

LITERAL_CONSTANTS = {"true": True, "false": False, "null": None}


class NodeShape(Enum):
    TAGGED_LITERAL = "tagged-literal"
    CALL_EXPRESSION = "http-call-body"
    VARIABLE_BINDING = "variable-binding"
    STRING_LITERAL = "string-literal"

    @property
    def context(self) -> str:
        return self.value


def classify(node: Node) -> NodeShape | None:
    """Map a node to the handler shape that applies to it, if any."""
    if node.type == "call_expression":
        arguments = get_child_by_field(node, "arguments")
        if arguments is not None and arguments.type == "template_string":
            return NodeShape.TAGGED_LITERAL
        return NodeShape.CALL_EXPRESSION
    if node.type == "variable_declarator":
        return NodeShape.VARIABLE_BINDING
    if node.type in ("string", "template_string"):
        return NodeShape.STRING_LITERAL
    return None


def tagged_template_text(node: Node | None) -> str | None:
    """Static text of a GraphQL-tagged template, or None for anything else."""
    node = unwrap(node)
    if node is None or node.type != "call_expression":
        return None
    arguments = get_child_by_field(node, "arguments")
    if arguments is None or arguments.type != "template_string":
        return None
    if callee_name(node) not in GQL_TAGS:
        return None
    return template_static_text(arguments)


def is_tag_argument(node: Node) -> bool:
    """True when a template_string is the quasi of a tagged template."""
    parent = node.parent
    return (
        parent is not None
        and parent.type == "call_expression"
        and get_child_by_field(parent, "arguments") == node
    )


def check_parse(tree: Tree) -> None:
    """Raise ParseFailure if the tree holds syntax errors."""
    if not tree.root_node.has_error:
        return
    for node in iter_nodes(tree.root_node):
        if node.type == "ERROR" or node.is_missing:
            line, column = node.start_point
            raise ParseFailure(f"syntax error at line {line + 1}, column {column + 1}")
    raise ParseFailure("syntax error")


class ScopeIndex:
    """Variable bindings keyed by (enclosing scope, name).

    Lookups walk outward from the reference, so the nearest declaration
    shadows outer ones. Hoisting and reassignment are not modeled.
    """

    def __init__(self) -> None:
        self._bindings: dict[tuple[int, str], Node] = {}

    def __len__(self) -> int:
        return len(self._bindings)

    @classmethod
    def build(cls, root: Node) -> "ScopeIndex":
        index = cls()
        for node in iter_nodes(root):
            if node.type == "variable_declarator":
                index.add(node)
        return index

    def add(self, declarator: Node) -> None:
        name = get_child_by_field(declarator, "name")
        value = get_child_by_field(declarator, "value")
        if name is None or value is None or name.type != "identifier":
            return
        scope = enclosing_scope(declarator)
        if scope is None:
            return
        # First declaration in a scope wins, like the operation maps
        self._bindings.setdefault((scope.id, node_text(name)), value)

    def lookup(self, reference: Node) -> Node | None:
        """Initializer bound to an identifier at the point it is used."""
        name = node_text(reference)
        scope = enclosing_scope(reference)
        depth = 0
        while scope is not None and depth < MAX_SCOPE_DEPTH:
            value = self._bindings.get((scope.id, name))
            if value is not None:
                return value
            scope = enclosing_scope(scope)
            depth += 1
        return None


@dataclass
class StructuralOutcome:
    """What the structural pass produced for one input."""

    tree: Tree | None = None
    parse_failed: bool = False
    diagnostics: list[str] = field(default_factory=list)


class StructuralExtractor:
    """Tree visitor that feeds operations into an OperationCollector.

    Args:
        collector: Operation map for the input being processed.
        aggressive: Also scan untagged string and template literals.
    """

    def __init__(self, collector: OperationCollector, aggressive: bool = False):
        self.collector = collector
        self.aggressive = aggressive
        self.scopes = ScopeIndex()
        self._handlers = {
            NodeShape.TAGGED_LITERAL: self._visit_tagged_literal,
            NodeShape.CALL_EXPRESSION: self._visit_call,
            NodeShape.VARIABLE_BINDING: self._visit_binding,
            NodeShape.STRING_LITERAL: self._visit_string,
        }

    def extract(self, text: str, language: str) -> StructuralOutcome:
        """Parse and visit one source text.

        Never raises: parse failures and visitor errors end up in the
        outcome's diagnostics.
        """
        outcome = StructuralOutcome()
        try:
            tree = parse_source(text.encode("utf-8", errors="replace"), language)
            check_parse(tree)
        except ParseFailure as e:
            outcome.parse_failed = True
            outcome.diagnostics.append(f"parse failure ({language}): {e}")
            return outcome

        outcome.tree = tree
        try:
            self.visit(tree.root_node)
        except Exception as e:
            outcome.diagnostics.append(f"structural pass aborted: {type(e).__name__}: {e}")
        return outcome

    def visit(self, root: Node) -> None:
        self.scopes = ScopeIndex.build(root)
        for node in iter_nodes(root):
            shape = classify(node)
            if shape is not None:
                self._handlers[shape](node, shape)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _visit_tagged_literal(self, node: Node, shape: NodeShape) -> None:
        text = tagged_template_text(node)
        if text is not None:
            self.collector.add_matches(text, shape.context)

    def _visit_binding(self, node: Node, shape: NodeShape) -> None:
        text = tagged_template_text(get_child_by_field(node, "value"))
        if text is not None:
            self.collector.add_matches(text, shape.context)

    def _visit_string(self, node: Node, shape: NodeShape) -> None:
        if not self.aggressive:
            return
        if node.type == "template_string":
            if is_tag_argument(node):
                return
            text = template_static_text(node)
        else:
            text = string_value(node)
        if passes_keyword_screen(text):
            self.collector.add_payload(text, shape.context)

    def _visit_call(self, node: Node, shape: NodeShape) -> None:
        if callee_name(node) not in HTTP_CLIENTS:
            return
        arguments = get_child_by_field(node, "arguments")
        if arguments is None:
            return
        args = argument_nodes(arguments)
        if len(args) >= 2:
            config = args[1]
        elif len(args) == 1:
            config = args[0]
        else:
            return

        config = self._resolve(config)
        if config is None:
            return
        if config.type != "object":
            # post(url, "...") / post(url, JSON.stringify({...})): the
            # second argument is the body itself
            if len(args) >= 2:
                text = self.static_text(config)
                if text:
                    self.collector.add_payload(text, shape.context)
            return

        members = object_members(config)
        code_variables = self._static_value(members.get("variables"))
        if not isinstance(code_variables, dict):
            code_variables = {}

        payload = None
        for key in BODY_KEYS:
            if key in members:
                payload = members[key]
                break
        if payload is None and any(key in members for key in OPERATION_KEYS):
            payload = config
        if payload is None:
            return

        text, payload_variables = self._payload_text(payload)
        if not text:
            return
        self.collector.add_payload(text, shape.context, {**code_variables, **payload_variables})

    # -------------------------------------------------------------------------
    # Static evaluation
    # -------------------------------------------------------------------------

    def _resolve(self, node: Node | None, depth: int = 0) -> Node | None:
        """Follow identifiers to the expression they are bound to."""
        node = unwrap(node)
        while node is not None and node.type in REFERENCE_TYPES and depth < MAX_RESOLVE_DEPTH:
            node = unwrap(self.scopes.lookup(node))
            depth += 1
        if node is not None and node.type in REFERENCE_TYPES:
            return None
        return node

    def _payload_text(self, node: Node) -> tuple[str | None, dict[str, Any]]:
        """Operation or body text of a payload expression plus any variables
        declared next to it."""
        node = self._resolve(node)
        if node is None:
            return None, {}
        if node.type == "object":
            members = object_members(node)
            variables = self._static_value(members.get("variables"))
            if not isinstance(variables, dict):
                variables = {}
            for key in OPERATION_KEYS:
                if key in members:
                    return self.static_text(members[key]), variables
            return None, {}
        return self.static_text(node), {}

    def static_text(self, node: Node | None, depth: int = 0) -> str | None:
        """Compile-time string value of an expression, if it has one.

        Handles string and template literals, ``+`` concatenation, tagged
        GraphQL templates, ``JSON.stringify({...})`` and identifiers bound
        to any of these. Unknown operands of ``+`` contribute nothing, like
        the holes of a template.
        """
        node = unwrap(node)
        if node is None or depth > MAX_RESOLVE_DEPTH:
            return None
        if node.type == "string":
            return string_value(node)
        if node.type == "template_string":
            return template_static_text(node)
        if node.type in REFERENCE_TYPES:
            return self.static_text(self.scopes.lookup(node), depth + 1)
        if node.type == "binary_expression":
            operator = get_child_by_field(node, "operator")
            if operator is None or operator.type != "+":
                return None
            left = self.static_text(get_child_by_field(node, "left"), depth + 1)
            right = self.static_text(get_child_by_field(node, "right"), depth + 1)
            if left is None and right is None:
                return None
            return (left or "") + (right or "")
        if node.type == "call_expression":
            tagged = tagged_template_text(node)
            if tagged is not None:
                return tagged
            return self._stringify(node, depth)
        return None

    def _stringify(self, call: Node, depth: int) -> str | None:
        func = unwrap(get_child_by_field(call, "function"))
        if func is None or func.type != "member_expression" or node_text(func) != "JSON.stringify":
            return None
        arguments = get_child_by_field(call, "arguments")
        if arguments is None or arguments.type != "arguments":
            return None
        args = argument_nodes(arguments)
        if not args:
            return None
        value = self._static_value(args[0], depth + 1)
        if value is _MISSING:
            return None
        return json.dumps(value)

    def _static_value(self, node: Node | None, depth: int = 0) -> Any:
        """Python value of a literal expression, or ``_MISSING``.

        Object members and array items that can't be evaluated are left out.
        """
        node = unwrap(node)
        if node is None or depth > MAX_RESOLVE_DEPTH:
            return _MISSING
        if node.type == "object":
            result = {}
            for key, value_node in object_members(node).items():
                value = self._static_value(value_node, depth + 1)
                if value is not _MISSING:
                    result[key] = value
            return result
        if node.type == "array":
            items = (self._static_value(child, depth + 1) for child in node.named_children)
            return [item for item in items if item is not _MISSING]
        if node.type == "number":
            return parse_number(node_text(node))
        if node.type in LITERAL_CONSTANTS:
            return LITERAL_CONSTANTS[node.type]
        if node.type in REFERENCE_TYPES:
            bound = self.scopes.lookup(node)
            if bound is None:
                return _MISSING
            return self._static_value(bound, depth + 1)
        text = self.static_text(node, depth)
        return _MISSING if text is None else text


def object_members(node: Node) -> dict[str, Node]:
    """Static-keyed ``pair`` values of an object literal, first key wins.

    Shorthand properties (``{query}``) map to their identifier node.
    """
    members: dict[str, Node] = {}
    for child in node.named_children:
        if child.type == "pair":
            key = property_key(child)
            value = get_child_by_field(child, "value")
            if key is not None and value is not None:
                members.setdefault(key, value)
        elif child.type == "shorthand_property_identifier":
            members.setdefault(node_text(child), child)
    return members


def parse_number(text: str) -> Any:
    cleaned = text.replace("_", "")
    try:
        return int(cleaned, 0)
    except ValueError:
        pass
    try:
        return float(cleaned)
    except ValueError:
        return _MISSING
