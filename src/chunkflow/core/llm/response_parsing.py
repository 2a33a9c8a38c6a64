"""JSON extraction utilities for model output."""

from __future__ import annotations

import json
import re
from typing import Any

from chunkflow.core.errors.pipeline import MalformedModelOutputError

_CODE_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*\n?([\s\S]*?)\n?[ \t]*```")


def strip_code_fence(content: str) -> str:
    """Return the body of the first markdown code fence, or the stripped text.

    Handles the ```json ... ``` wrapping models often add around JSON.
    """
    match = _CODE_FENCE_PATTERN.search(content)
    if match:
        return match.group(1).strip()
    return content.strip()


def parse_json_array(content: str) -> list[Any]:
    """Parse model output that must be a JSON array.

    Args:
        content: Raw model output, optionally wrapped in a code fence

    Returns:
        The parsed list

    Raises:
        MalformedModelOutputError: If the output is not valid JSON or not an array
    """
    stripped = strip_code_fence(content)
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise MalformedModelOutputError(f"Model output is not valid JSON: {e}", raw=content) from e

    if not isinstance(data, list):
        raise MalformedModelOutputError(
            f"Expected a JSON array, got {type(data).__name__}", raw=content
        )
    return data
