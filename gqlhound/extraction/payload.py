"""JSON request bodies that carry GraphQL operations."""

import json
from typing import Any

from gqlhound.exceptions import PayloadDecodeFailure

# Payload members that hold operation text
OPERATION_KEYS = ("query", "mutation")


def looks_like_json(text: str) -> bool:
    return text.lstrip()[:1] in ("{", "[")


def decode_payload(text: str) -> list[tuple[str, dict[str, Any]]]:
    """Decode a JSON request body into (operation text, variables) pairs.

    Accepts a single ``{"query": ..., "variables": ...}`` object or a list
    of them (batched requests). String escapes are undone by the decoder, so
    ``\\n`` and ``\\"`` inside the operation come back as plain characters.

    Raises:
        PayloadDecodeFailure: If the text is not JSON or holds no operation.
    """
    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as e:
        raise PayloadDecodeFailure(str(e)) from e

    entries = data if isinstance(data, list) else [data]
    decoded = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        for key in OPERATION_KEYS:
            operation = entry.get(key)
            if isinstance(operation, str):
                variables = entry.get("variables")
                decoded.append((operation, variables if isinstance(variables, dict) else {}))
                break
    if not decoded:
        raise PayloadDecodeFailure("JSON body has no query or mutation member")
    return decoded
