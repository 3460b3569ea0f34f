"""Layered text patterns for operation-shaped spans.

Patterns are tried in a fixed order, highest confidence first:

1. standard  - keyword, optional name/args, balanced brace body
2. minified  - no-spacing variant with bounded brace nesting
3. quoted    - a quoted span free of escapes whose content holds a keyword
4. escaped   - like quoted, tolerating escaped quotes inside the span
5. split     - keyword, short gap, brace body, cut off by a following ';'

Only ``standard`` runs in normal mode; 2-5 are for aggressive scans.
Every match goes through the same post-processing: re-anchor at the real
operation keyword, clip at the end of the first balanced body, and (for 3-5)
repair bodies that never close.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass

from gqlhound.exceptions import MalformedOperationBody
from gqlhound.extraction.signature import HEAD_PATTERN

# Low-confidence matches shorter than this are incidental keyword hits
MIN_PATTERN_MATCH_LENGTH = 30

# Max characters between a keyword and its body for the split pattern
SPLIT_GAP_LIMIT = 80

# Brace levels allowed below the outer body for the minified pattern
MINIFIED_NESTING_DEPTH = 3

# Give up on brace matching after this many characters
MAX_BODY_LENGTH = 100_000

_KEYWORDS = r"(?:query|mutation|subscription|fragment)"
_NAME = r"[_A-Za-z][_0-9A-Za-z]*"

_KEYWORD = re.compile(rf"\b{_KEYWORDS}\b")

_SCREEN = re.compile(
    r"query|mutation|subscription|fragment|typename|edges|node|pageinfo",
    re.IGNORECASE,
)

# Stripped from the tail of a truncated match before repair
_REPAIR_RESIDUE = " \t\r\n\"'`\\,;"


def passes_keyword_screen(text: str) -> bool:
    """Cheap pre-check run before any pattern touches the text."""
    return _SCREEN.search(text) is not None


def find_body_end(text: str, open_index: int) -> int:
    """Return the index just past the brace that closes ``text[open_index]``.

    Double-quoted GraphQL strings are skipped and a backslash always escapes
    the next character, so ``\\"`` from an embedded JSON payload never opens
    a string.

    Raises:
        MalformedOperationBody: If the body never balances.
    """
    depth = 0
    in_string = False
    limit = min(len(text), open_index + MAX_BODY_LENGTH)
    i = open_index
    while i < limit:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if in_string:
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    raise MalformedOperationBody(f"unbalanced body starting at offset {open_index}")


def anchor_operation(text: str) -> str | None:
    """Cut leading noise so the text starts at its operation keyword.

    Looks for the last keyword before the first ``{`` that forms a complete
    operation head, so ``query\\":\\"mutation M($query: String) {`` anchors
    at ``mutation``. Falls back to the first keyword for compressed heads.
    Returns None when there is no body or no keyword before it.
    """
    brace = text.find("{")
    if brace < 0:
        return None
    keywords = list(_KEYWORD.finditer(text, 0, brace))
    if not keywords:
        return None
    for keyword in reversed(keywords):
        head = HEAD_PATTERN.match(text, keyword.start())
        if head and head.end() == brace:
            return text[keyword.start():]
    return text[keywords[0].start():]


def repair_operation(text: str) -> tuple[str, bool]:
    """Close a truncated operation with one trailing brace.

    Returns:
        Tuple of (repaired text, whether a brace was appended).
    """
    text = text.rstrip(_REPAIR_RESIDUE)
    if text.endswith("}"):
        return text, False
    return text + "}", True


def _nested_braces(depth: int) -> str:
    body = r"\{[^{}]*\}"
    for _ in range(depth):
        body = r"\{(?:[^{}]|" + body + r")*\}"
    return body


@dataclass(frozen=True)
class PatternMatch:
    """Post-processed text found by one pattern."""

    text: str
    pattern_index: int
    pattern_name: str
    start: int
    end: int
    repaired: bool = False

    @property
    def context(self) -> str:
        return f"pattern-{self.pattern_index}"


class OperationPattern:
    """A regex whose matches are turned into operation text.

    Args:
        index: 1-based position in the pattern library.
        name: Short name used in diagnostics.
        regex: Compiled expression. If it has an ``op`` group, that group is
            the candidate text; otherwise the whole match is.
        repairable: Whether unbalanced bodies are repaired or dropped.
        min_length: Matches shorter than this are dropped.
    """

    def __init__(
        self,
        index: int,
        name: str,
        regex: re.Pattern[str],
        repairable: bool = False,
        min_length: int = MIN_PATTERN_MATCH_LENGTH,
    ):
        self.index = index
        self.name = name
        self.regex = regex
        self.repairable = repairable
        self.min_length = min_length

    def __repr__(self) -> str:
        return f"<OperationPattern {self.index}:{self.name}>"

    def finditer(self, text: str) -> Iterator[PatternMatch]:
        group = "op" if "op" in self.regex.groupindex else 0
        for match in self.regex.finditer(text):
            finished = self._finish(match.group(group))
            if finished is None:
                continue
            body, repaired = finished
            if len(body) < self.min_length:
                continue
            yield PatternMatch(
                text=body,
                pattern_index=self.index,
                pattern_name=self.name,
                start=match.start(group),
                end=match.end(group),
                repaired=repaired,
            )

    def _finish(self, text: str) -> tuple[str, bool] | None:
        anchored = anchor_operation(text)
        if anchored is None:
            return None
        try:
            end = find_body_end(anchored, anchored.index("{"))
        except MalformedOperationBody:
            if not self.repairable:
                return None
            return repair_operation(anchored)
        return anchored[:end], False


class StandardPattern(OperationPattern):
    """Keyword head followed by a balanced brace body.

    Brace balancing can't be expressed in ``re``, so the head is matched by
    regex and the body is scanned by hand.
    """

    def __init__(self) -> None:
        super().__init__(1, "standard", HEAD_PATTERN, repairable=False, min_length=0)

    def finditer(self, text: str) -> Iterator[PatternMatch]:
        pos = 0
        while True:
            head = self.regex.search(text, pos)
            if head is None:
                return
            try:
                end = find_body_end(text, head.end())
            except MalformedOperationBody:
                pos = head.end()
                continue
            yield PatternMatch(
                text=text[head.start():end],
                pattern_index=self.index,
                pattern_name=self.name,
                start=head.start(),
                end=end,
            )
            pos = end


STANDARD = StandardPattern()

MINIFIED = OperationPattern(
    2,
    "minified",
    re.compile(
        rf"\b{_KEYWORDS}\b\s*(?:{_NAME})?\s*(?:\([^()]*\))?\s*(?:on\s*{_NAME}\s*)?"
        + _nested_braces(MINIFIED_NESTING_DEPTH)
    ),
)

QUOTED = OperationPattern(
    3,
    "quoted",
    re.compile(
        r"(?P<q>[\"'`])(?:(?!(?P=q))[^\\])*?"
        rf"(?P<op>\b{_KEYWORDS}\b(?:(?!(?P=q))[^\\])*)(?P=q)",
        re.DOTALL,
    ),
    repairable=True,
)

ESCAPED = OperationPattern(
    4,
    "escaped",
    re.compile(
        r"(?P<q>\\?[\"'`])(?:(?!(?P=q))(?:\\.|[^\\]))*?"
        rf"(?P<op>\b{_KEYWORDS}\b(?:(?!(?P=q))(?:\\.|[^\\]))*)(?P=q)",
        re.DOTALL,
    ),
    repairable=True,
)

SPLIT = OperationPattern(
    5,
    "split",
    re.compile(
        rf"\b(?P<op>{_KEYWORDS}\b[^{{;]{{0,{SPLIT_GAP_LIMIT}}}\{{[^;]*)(?=;)"
    ),
    repairable=True,
)

# Ordered pattern library; index i holds pattern number i + 1
PATTERNS: tuple[OperationPattern, ...] = (STANDARD, MINIFIED, QUOTED, ESCAPED, SPLIT)

AGGRESSIVE_PATTERNS: tuple[OperationPattern, ...] = PATTERNS[1:]


__all__ = [
    "AGGRESSIVE_PATTERNS",
    "ESCAPED",
    "MAX_BODY_LENGTH",
    "MINIFIED",
    "MINIFIED_NESTING_DEPTH",
    "MIN_PATTERN_MATCH_LENGTH",
    "OperationPattern",
    "PATTERNS",
    "PatternMatch",
    "QUOTED",
    "SPLIT",
    "SPLIT_GAP_LIMIT",
    "STANDARD",
    "StandardPattern",
    "anchor_operation",
    "find_body_end",
    "passes_keyword_screen",
    "repair_operation",
]
