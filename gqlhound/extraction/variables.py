"""Placeholder values for operation variables.

Best-effort stubs for request replay tooling. No type resolution happens
here: the decision is made from substrings of the declared type name.
"""

import re
from collections.abc import Mapping
from typing import Any

SAMPLE_STRING = "sample-string"
SAMPLE_ID = "123"

# "$name: Type" or "name: Type", separated by commas or newlines
_ARGUMENT = re.compile(r"\$?(?P<name>[_A-Za-z][_0-9A-Za-z]*)\s*:\s*(?P<type>[^,\n$]+)")


def default_value(type_name: str) -> Any:
    """Pick a placeholder for a declared type.

    Checks run in a fixed order, so ``[String]`` yields a sample string
    rather than an empty list.
    """
    if "String" in type_name:
        return SAMPLE_STRING
    if "Int" in type_name or "Float" in type_name:
        return 0
    if "Boolean" in type_name:
        return False
    if "ID" in type_name:
        return SAMPLE_ID
    if "[" in type_name:
        return []
    return None


def infer_variables(
    argument_text: str | None,
    variables: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a variables mapping from an operation's argument list.

    Args:
        argument_text: Text between the parentheses of the operation head,
            e.g. ``"$id: ID!, $first: Int = 10"``.
        variables: Values already known for some variables. These are kept
            as-is; only missing names get placeholders.

    Returns:
        New dict; the caller's mapping is not modified.
    """
    result = dict(variables or {})
    if not argument_text:
        return result

    for match in _ARGUMENT.finditer(argument_text):
        name = match.group("name")
        if name in result:
            continue
        result[name] = default_value(match.group("type").strip())
    return result
