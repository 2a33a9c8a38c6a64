"""Relevance-based chunk selection under a caller limit.

Issues one scoring call covering every chunk (each truncated to a short
preview), then keeps the highest-scoring chunks. Ranking is an
optimization: any failure of the scoring call degrades to the first
``limit`` chunks in original order instead of failing the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import string
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from chunkflow.core.errors.pipeline import MalformedModelOutputError
from chunkflow.core.llm.response_parsing import parse_json_array
from chunkflow.core.llm.types import CallModel, build_messages

from .constants import NEUTRAL_PRIORITY_SCORE, PRIORITY_PREVIEW_CHARS
from .models import Chunk, ChunkPriority

logger = logging.getLogger(__name__)

ScoreFunc = Callable[[str], Awaitable[str]]

_PRIORITY_LIST = TypeAdapter(list[ChunkPriority])

_PRIORITIZATION_SYSTEM_PROMPT = (
    "You rate text chunks for relevance. You MUST respond with ONLY a valid JSON array."
)

_PRIORITIZATION_PROMPT = string.Template("""\
Rate how relevant each of the following text chunks is to the topic below, \
on a scale from 1 (irrelevant) to 10 (essential).

Topic:
$topic

Chunks (previews, possibly truncated):
$chunks

Respond with ONLY a JSON array containing one object per chunk, in the form:
[{"chunk_index": 0, "score": 7}, {"chunk_index": 1, "score": 3}]
""")


def build_prioritization_prompt(
    chunks: Sequence[Chunk],
    relevance_topic: str,
    preview_chars: int = PRIORITY_PREVIEW_CHARS,
) -> str:
    """Render the scoring prompt; chunk indexes are list positions."""
    listing = "\n\n".join(
        f"--- Chunk {position} ---\n{chunk.preview(preview_chars)}"
        for position, chunk in enumerate(chunks)
    )
    return _PRIORITIZATION_PROMPT.safe_substitute(topic=relevance_topic, chunks=listing)


def parse_priorities(raw: str) -> list[ChunkPriority]:
    """Parse and validate the scoring call's output.

    Raises:
        MalformedModelOutputError: If the output is not a JSON array of
            objects that all carry ``chunk_index`` and ``score``
    """
    data = parse_json_array(raw)
    try:
        return _PRIORITY_LIST.validate_python(data)
    except ValidationError as e:
        raise MalformedModelOutputError(
            f"Invalid chunk priority entries: {e.error_count()} errors", raw=raw
        ) from e


def rank_chunks(
    chunks: Sequence[Chunk],
    priorities: Sequence[ChunkPriority],
    limit: int,
) -> list[Chunk]:
    """Order chunks by descending score and keep the first ``limit``.

    Chunks without a priority entry score neutral; ties keep original order.
    """
    scores = {
        p.chunk_index: p.score for p in priorities if 0 <= p.chunk_index < len(chunks)
    }
    ranked = sorted(
        range(len(chunks)),
        key=lambda position: scores.get(position, NEUTRAL_PRIORITY_SCORE),
        reverse=True,
    )
    return [chunks[position] for position in ranked[:limit]]


async def prioritize_chunks(
    chunks: Sequence[Chunk],
    relevance_topic: str,
    limit: int,
    score_fn: ScoreFunc,
    *,
    preview_chars: int = PRIORITY_PREVIEW_CHARS,
    timeout: Optional[float] = None,
) -> list[Chunk]:
    """Select up to ``limit`` chunks most relevant to ``relevance_topic``.

    Args:
        chunks: Candidate chunks
        relevance_topic: Topic the chunks are scored against
        limit: Maximum chunks to keep; <= 0 means no limit
        score_fn: Async function sending the scoring prompt to a model
        preview_chars: Characters of each chunk shown in the prompt
        timeout: Optional timeout for the scoring call in seconds

    Returns:
        Selected chunks (original, untruncated text). Unchanged input when
        no reduction is needed; the first ``limit`` chunks when scoring fails.
    """
    if limit <= 0 or limit >= len(chunks):
        return list(chunks)

    prompt = build_prioritization_prompt(chunks, relevance_topic, preview_chars)
    try:
        if timeout:
            raw = await asyncio.wait_for(score_fn(prompt), timeout=timeout)
        else:
            raw = await score_fn(prompt)
        priorities = parse_priorities(raw)
    except asyncio.TimeoutError:
        logger.warning(
            f"Chunk prioritization timed out after {timeout}s; "
            f"keeping first {limit} of {len(chunks)} chunks"
        )
        return list(chunks[:limit])
    except Exception as e:
        logger.warning(
            f"Chunk prioritization failed ({e}); keeping first {limit} of {len(chunks)} chunks"
        )
        return list(chunks[:limit])

    selected = rank_chunks(chunks, priorities, limit)
    logger.debug(
        f"Prioritized {len(chunks)} chunks to {len(selected)}: "
        f"{[chunk.index for chunk in selected]}"
    )
    return selected


class ChunkPrioritizer:
    """Chunk prioritizer bound to a model caller.

    Example:
        prioritizer = ChunkPrioritizer(client.call_model, "openai", timeout=30.0)
        selected = await prioritizer.prioritize(chunks, "quarterly revenue", limit=3)
    """

    def __init__(
        self,
        call_model: CallModel,
        model_id: str,
        options: Optional[dict[str, Any]] = None,
        *,
        preview_chars: int = PRIORITY_PREVIEW_CHARS,
        timeout: Optional[float] = None,
        system_prompt: str = _PRIORITIZATION_SYSTEM_PROMPT,
    ):
        self._call_model = call_model
        self._model_id = model_id
        self._options = dict(options or {})
        self.preview_chars = preview_chars
        self.timeout = timeout
        self.system_prompt = system_prompt

    async def _score(self, prompt: str) -> str:
        messages = build_messages(self.system_prompt, prompt)
        return await self._call_model(self._model_id, messages, dict(self._options))

    async def prioritize(
        self,
        chunks: Sequence[Chunk],
        relevance_topic: str,
        limit: int,
    ) -> list[Chunk]:
        """Select up to ``limit`` chunks; see ``prioritize_chunks``."""
        return await prioritize_chunks(
            chunks,
            relevance_topic,
            limit,
            self._score,
            preview_chars=self.preview_chars,
            timeout=self.timeout,
        )
