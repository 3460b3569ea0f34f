"""Per-input candidate collection with signature-based dedup."""

from collections.abc import Iterable, Mapping
from typing import Any

from gqlhound.exceptions import PayloadDecodeFailure
from gqlhound.extraction.patterns import STANDARD, OperationPattern
from gqlhound.extraction.payload import decode_payload, looks_like_json
from gqlhound.extraction.signature import describe_operation, normalize, placeholder_name
from gqlhound.extraction.variables import infer_variables
from gqlhound.models.operation import CandidateOperation


class OperationCollector:
    """Local operation map for one input, keyed by canonical signature.

    First writer wins: once a signature is recorded, later sightings of the
    same text (from any strategy) are ignored. Plugins receive the collector
    for the input they run on and must add through it.
    """

    def __init__(self, source: str, origin: str):
        self.source = source
        self.origin = origin
        self._operations: dict[str, CandidateOperation] = {}
        self.counts: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._operations)

    @property
    def operations(self) -> list[CandidateOperation]:
        return list(self._operations.values())

    def add(
        self,
        text: str,
        context: str,
        variables: Mapping[str, Any] | None = None,
    ) -> CandidateOperation | None:
        """Record operation text found by some strategy.

        Args:
            text: Final operation text (already clipped/repaired).
            context: Detection context tag, e.g. ``"comment"``.
            variables: Known variable values; placeholders fill the rest.

        Returns:
            The new operation, or None if the text is empty or its signature
            was already recorded.
        """
        stripped = text.strip()
        signature = normalize(stripped)
        if not signature or signature in self._operations:
            return None

        head = describe_operation(stripped)
        operation = CandidateOperation(
            raw_text=stripped,
            signature=signature,
            name=head.name or placeholder_name(head.kind, signature),
            kind=head.kind,
            variables=infer_variables(head.args, variables),
            source=self.source,
            origin=self.origin,
            context=context,
        )
        self._operations[signature] = operation
        self.counts[context] = self.counts.get(context, 0) + 1
        return operation

    def add_matches(
        self,
        text: str,
        context: str,
        variables: Mapping[str, Any] | None = None,
        patterns: Iterable[OperationPattern] = (STANDARD,),
    ) -> int:
        """Run patterns over text and record every match.

        Returns:
            Number of matches found (recorded or already known).
        """
        found = 0
        for pattern in patterns:
            for match in pattern.finditer(text):
                found += 1
                self.add(match.text, context, variables)
        return found

    def add_payload(
        self,
        text: str,
        context: str,
        variables: Mapping[str, Any] | None = None,
    ) -> int:
        """Record the operations of a request body or literal.

        JSON bodies are decoded first and their ``variables`` override the
        caller's. Anything else goes through the standard pattern as-is.

        Returns:
            Number of operations found (recorded or already known).
        """
        code_variables = dict(variables or {})
        if looks_like_json(text):
            try:
                decoded = decode_payload(text)
            except PayloadDecodeFailure:
                pass
            else:
                return sum(
                    self.add_matches(operation, context, {**code_variables, **json_variables})
                    for operation, json_variables in decoded
                )
        return self.add_matches(text, context, code_variables)
