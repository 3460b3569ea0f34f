"""Text-level extraction for comments and minified/bundled code.

These scans work on raw source text and never need a syntax tree, so they
still run when the structural pass fails to parse an input.
"""

import re
from collections.abc import Sequence

from gqlhound.extraction.collector import OperationCollector
from gqlhound.extraction.patterns import (
    AGGRESSIVE_PATTERNS,
    passes_keyword_screen,
)
from gqlhound.extraction.syntax import cook

# Inputs longer than this with very long lines are treated as minified
MINIFIED_SIZE_THRESHOLD = 5000
MINIFIED_LINE_LENGTH = 500

COMMENT_CONTEXT = "comment"
STRING_CONTEXT = "minified-string"

_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)

_BLOCK_DELIMITERS = re.compile(r"^/\*+|\*+/$")
_GUTTER = re.compile(r"^[ \t]*\*+[ \t]?", re.MULTILINE)
_LINE_PREFIX = re.compile(r"^//[ \t]*", re.MULTILINE)

# Quoted spans; a backslash escapes whatever follows it. Plain quotes stop
# at a line break, backtick templates may span lines.
_QUOTED_SPAN = re.compile(
    r'"(?P<dq>(?:[^"\\\n]|\\.)*)"'
    r"|'(?P<sq>(?:[^'\\\n]|\\.)*)'"
    r"|`(?P<bt>(?:[^`\\]|\\.)*)`",
    re.DOTALL,
)


def clean_comment(comment: str) -> str:
    """Strip comment delimiters and ``*`` gutters from a raw comment."""
    if comment.startswith("/*"):
        text = _BLOCK_DELIMITERS.sub("", comment)
        return _GUTTER.sub("", text).strip()
    return _LINE_PREFIX.sub("", comment).strip()


def scan_comments(text: str, collector: OperationCollector) -> int:
    """Match the standard pattern inside every block and line comment.

    Returns:
        Number of comments that held at least one operation.
    """
    hits = 0
    for regex in (_BLOCK_COMMENT, _LINE_COMMENT):
        for match in regex.finditer(text):
            cleaned = clean_comment(match.group(0))
            if not passes_keyword_screen(cleaned):
                continue
            if collector.add_matches(cleaned, COMMENT_CONTEXT):
                hits += 1
    return hits


def looks_minified(text: str) -> bool:
    """Long input whose lines are, on average, very long."""
    if len(text) <= MINIFIED_SIZE_THRESHOLD:
        return False
    lines = text.count("\n") + 1
    return len(text) / lines > MINIFIED_LINE_LENGTH


def scan_string_literals(
    text: str,
    collector: OperationCollector,
    aggressive: bool = False,
    claimed: list[tuple[int, int]] | None = None,
) -> int:
    """Look for operations inside every quoted span of the raw text.

    The cooked span content goes through ``add_payload`` first, so a JSON
    body inside a string is decoded before matching. In aggressive mode
    patterns 2-5 follow on the raw span (quotes included, so the quote-aware
    patterns can see their delimiters). The first pattern that produces a
    match wins for that span.

    Args:
        claimed: If given, receives the (start, end) offsets of every span
            that held an operation.

    Returns:
        Number of spans that held at least one operation.
    """
    hits = 0
    for span in _QUOTED_SPAN.finditer(text):
        raw = span.group(0)
        if not passes_keyword_screen(raw):
            continue
        content = next(group for group in span.groups() if group is not None)
        found = collector.add_payload(cook(content), STRING_CONTEXT)
        if not found and aggressive:
            for pattern in AGGRESSIVE_PATTERNS:
                found = collector.add_matches(raw, STRING_CONTEXT, patterns=(pattern,))
                if found:
                    break
        if found:
            hits += 1
            if claimed is not None:
                claimed.append(span.span())
    return hits


def _overlaps(start: int, end: int, spans: Sequence[tuple[int, int]]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def scan_whole_file(
    text: str,
    collector: OperationCollector,
    claimed: Sequence[tuple[int, int]] = (),
) -> int:
    """Apply patterns 2-5 to the full text (aggressive mode).

    Each accepted match is recorded under ``pattern-N``; signatures already
    found by an earlier strategy are skipped by the collector. Matches that
    overlap a ``claimed`` span are dropped: that span's operation was
    already read from its unescaped value, and the raw text still carries
    the escapes.

    Returns:
        Number of new operations recorded.
    """
    added = 0
    for pattern in AGGRESSIVE_PATTERNS:
        for match in pattern.finditer(text):
            if _overlaps(match.start, match.end, claimed):
                continue
            if collector.add(match.text, match.context) is not None:
                added += 1
    return added


def run_heuristics(
    text: str,
    collector: OperationCollector,
    aggressive: bool = False,
    parse_failed: bool = False,
) -> list[str]:
    """Heuristic pass that follows the structural one.

    Returns:
        Diagnostic lines describing which scans ran and what they found.
    """
    diagnostics = []
    if not passes_keyword_screen(text):
        return diagnostics

    claimed: list[tuple[int, int]] = []
    minified = looks_minified(text)
    if aggressive or minified or parse_failed:
        reason = "aggressive" if aggressive else "minified" if minified else "parse failure"
        spans = scan_string_literals(text, collector, aggressive, claimed)
        diagnostics.append(f"string scan ({reason}): {spans} span(s) with operations")

    if aggressive:
        added = scan_whole_file(text, collector, claimed)
        diagnostics.append(f"pattern scan: {added} new operation(s)")
    return diagnostics


__all__ = [
    "COMMENT_CONTEXT",
    "MINIFIED_LINE_LENGTH",
    "MINIFIED_SIZE_THRESHOLD",
    "STRING_CONTEXT",
    "clean_comment",
    "looks_minified",
    "run_heuristics",
    "scan_comments",
    "scan_string_literals",
    "scan_whole_file",
]
