"""Shared test fixtures for chunkflow tests.

Provides a recording fake model caller that satisfies the ``CallModel``
signature without any network access.
"""

import asyncio
from typing import Any, Callable, Optional

import pytest

Responder = Callable[[str, list, dict], str]


class FakeModel:
    """Recording model caller.

    Each call is appended to ``calls`` before the responder runs, so a
    responder that raises still counts as an issued call.
    """

    def __init__(self, responder: Optional[Responder] = None, delay: float = 0.0):
        self.calls: list[dict[str, Any]] = []
        self.responder = responder
        self.delay = delay

    async def __call__(self, model_id: str, messages: list, options: dict) -> str:
        self.calls.append({"model_id": model_id, "messages": messages, "options": options})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.responder is None:
            return f"output-{len(self.calls)}"
        return self.responder(model_id, messages, options)

    @property
    def user_prompts(self) -> list[str]:
        return [call["messages"][-1]["content"] for call in self.calls]


@pytest.fixture
def fake_model():
    """Fake model caller answering ``output-<n>`` for the n-th call."""
    return FakeModel()


@pytest.fixture
def make_fake_model():
    """Factory for fake model callers with a custom responder or delay."""
    return FakeModel
