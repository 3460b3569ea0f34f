"""Canonical signatures and operation heads.

The signature of a candidate is its text with every whitespace run collapsed
to a single space and the ends trimmed. It is the only dedup key used
anywhere in the engine.
"""

import hashlib
import re
from dataclasses import dataclass

_WHITESPACE = re.compile(r"\s+")

OPERATION_KEYWORDS = ("query", "mutation", "subscription", "fragment")

_NAME = r"[_A-Za-z][_0-9A-Za-z]*"

# keyword, optional name, optional (args), optional type condition, optional
# directives, stopping right before the opening brace of the body
HEAD_PATTERN = re.compile(
    r"\b(?P<kind>query|mutation|subscription|fragment)\b"
    rf"(?:\s+(?P<name>{_NAME}))?"
    r"\s*(?:\((?P<args>[^()]*)\))?"
    rf"(?:\s*on\s+{_NAME})?"
    rf"(?:\s*@{_NAME}(?:\([^()]*\))?)*"
    r"\s*(?=\{)"
)

_LOOSE_HEAD = re.compile(
    rf"\s*(?P<kind>query|mutation|subscription|fragment)\b\s*(?P<name>{_NAME})?"
)


@dataclass(frozen=True)
class OperationHead:
    """Leading part of an operation: its kind, name and raw argument text."""

    kind: str
    name: str | None
    args: str | None


def normalize(text: str) -> str:
    """Collapse whitespace runs to one space and trim.

    Idempotent: ``normalize(normalize(x)) == normalize(x)``.
    """
    return _WHITESPACE.sub(" ", text).strip()


def describe_operation(text: str) -> OperationHead:
    """Parse kind, name and argument list from the start of candidate text."""
    stripped = text.lstrip()
    head = HEAD_PATTERN.match(stripped)
    if head:
        return OperationHead(head.group("kind"), head.group("name"), head.group("args"))

    # Repaired or compressed text may not form a full head
    loose = _LOOSE_HEAD.match(stripped)
    if loose:
        name = loose.group("name")
        if name == "on":
            name = None
        return OperationHead(loose.group("kind"), name, None)
    return OperationHead("unknown", None, None)


def placeholder_name(kind: str, signature: str) -> str:
    """Deterministic name for anonymous operations.

    Derived from the signature so the same operation gets the same name no
    matter which worker found it or in which order tasks completed.
    """
    digest = hashlib.sha1(signature.encode("utf-8")).hexdigest()[:8]
    label = kind.capitalize() if kind != "unknown" else "Operation"
    return f"Anonymous{label}_{digest}"
