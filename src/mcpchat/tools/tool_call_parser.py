"""
Parser for the argument text attached to a model tool call.

Chat-completions endpoints deliver tool arguments as a JSON *string*, e.g.
    '{"city": "Seattle"}'
Some OpenAI-compatible servers wrap that string in a markdown code fence or return an empty string
for tools without parameters.  ``parse_tool_arguments`` accepts all of these and always returns a
dictionary.
"""

import json
import re
from typing import (
    Any,
    Dict,
)


class ToolCallParseError(ValueError):
    """Raised when the argument text cannot be parsed into a JSON object."""


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
_FENCE_RE = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL)


def _strip_code_fence(text: str) -> str:
    if "```" in text:
        match = _FENCE_RE.search(text)
        if match:
            return match.group(1).strip()
    return text


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------
def parse_tool_arguments(text: str | None) -> Dict[str, Any]:
    """
    Parse the arguments of a tool call.

    Returns
        ``{}`` for ``None`` or blank input, otherwise the decoded JSON object.
    Raises
        ToolCallParseError if the text is not JSON or does not decode to an object.
    """
    if text is None:
        return {}

    cleaned = _strip_code_fence(text.strip())
    if not cleaned:
        return {}

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ToolCallParseError(f"invalid JSON in tool arguments: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ToolCallParseError(
            f"tool arguments must be a JSON object, got {type(parsed).__name__}"
        )
    return parsed
