"""Types for the model-call capability consumed by the pipeline.

The pipeline never talks to a model endpoint directly. It receives a
``CallModel`` function with the signature::

    async def call_model(model_id: str, messages: list[ChatMessage], options: dict) -> str

Any provider can be plugged in by satisfying that signature; the bundled
``OpenAICompatibleClient`` is one such implementation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Mapping, Optional, Protocol, TypedDict, runtime_checkable


class ChatMessage(TypedDict):
    """One chat message in OpenAI ``{role, content}`` form."""

    role: str
    content: str


CallModel = Callable[[str, list[ChatMessage], dict[str, Any]], Awaitable[str]]


@runtime_checkable
class ModelCaller(Protocol):
    """Object form of the capability: anything with a ``call_model`` coroutine."""

    async def call_model(
        self,
        model_id: str,
        messages: list[ChatMessage],
        options: Optional[Mapping[str, Any]] = None,
    ) -> str: ...


ProcessingPromptTemplate = Callable[[str, str], str]
SynthesisPromptTemplate = Callable[[str], str]


def build_messages(
    system_prompt: str,
    user_content: str,
    *,
    context: Optional[str] = None,
) -> list[ChatMessage]:
    """Build the system + user message list for one call.

    Args:
        system_prompt: System message content (omitted when empty)
        user_content: Rendered user prompt
        context: Optional extra system message (e.g. the goal a synthesis
            step should serve)

    Returns:
        Ordered list of messages
    """
    messages: list[ChatMessage] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    if context:
        messages.append({"role": "system", "content": context})
    messages.append({"role": "user", "content": user_content})
    return messages


def message_overhead(system_prompt: str, *, context: Optional[str] = None) -> int:
    """Characters used by the system messages of ``build_messages``."""
    return len(system_prompt or "") + len(context or "")
