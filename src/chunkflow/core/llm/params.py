"""Derive model call options from the wording of a goal."""

from __future__ import annotations

import re
from typing import Any

_CREATIVE_WORDS = re.compile(r"\b(creative|imaginative|wild|artistic|unconventional)\b")
_PRECISE_WORDS = re.compile(r"\b(precise|strict|exact|formal|literal|technical)\b")
_DEEP_WORDS = re.compile(r"\b(deeply|thoroughly|complex|analyze|detailed plan)\b")
_QUICK_WORDS = re.compile(r"\b(quick|brief|extract|simple|fast|summarize)\b")
_PERSONA = re.compile(r"act as (a|an) ([\w\s]+?)(?=[,.]|$)")

CREATIVE_TEMPERATURE = 1.5
PRECISE_TEMPERATURE = 0.2


def parse_dynamic_parameters(goal: str) -> dict[str, Any]:
    """Infer temperature, reasoning effort and persona from goal text.

    Args:
        goal: Free-form goal text

    Returns:
        Options dict with any of ``temperature``, ``reasoning_effort`` and
        ``system_prompt``; empty when nothing matches

    Examples:
        >>> parse_dynamic_parameters("Write a creative story")
        {'temperature': 1.5}
        >>> parse_dynamic_parameters("Act as a tax lawyer, and be brief")
        {'reasoning_effort': 'low', 'system_prompt': 'You are tax lawyer.'}
    """
    params: dict[str, Any] = {}
    lower_goal = goal.lower()

    if _CREATIVE_WORDS.search(lower_goal):
        params["temperature"] = CREATIVE_TEMPERATURE
    elif _PRECISE_WORDS.search(lower_goal):
        params["temperature"] = PRECISE_TEMPERATURE

    if _DEEP_WORDS.search(lower_goal):
        params["reasoning_effort"] = "high"
    elif _QUICK_WORDS.search(lower_goal):
        params["reasoning_effort"] = "low"

    persona = _PERSONA.search(lower_goal)
    if persona and persona.group(2).strip():
        params["system_prompt"] = f"You are {persona.group(2).strip()}."

    return params
