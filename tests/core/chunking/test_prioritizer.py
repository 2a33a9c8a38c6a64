"""Tests for relevance-based chunk selection."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from chunkflow.core.chunking.models import Chunk, ChunkPriority, SourceKind
from chunkflow.core.chunking.prioritizer import (
    ChunkPrioritizer,
    build_prioritization_prompt,
    parse_priorities,
    prioritize_chunks,
    rank_chunks,
)
from chunkflow.core.errors import MalformedModelOutputError, UpstreamCallError


def _chunks(count, length=20):
    return [
        Chunk(index=i, source_kind=SourceKind.MAIN, text=chr(ord("a") + i) * length)
        for i in range(count)
    ]


def _scores(pairs):
    return json.dumps([{"chunk_index": index, "score": score} for index, score in pairs])


class TestPrioritizeNoOp:
    """Cases where no scoring call is needed."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -1, 5, 9])
    async def test_identity_without_reduction(self, limit):
        """limit <= 0 or >= len(chunks) returns the input unchanged."""
        chunks = _chunks(5)
        score_fn = AsyncMock()

        result = await prioritize_chunks(chunks, "topic", limit, score_fn)

        assert result == chunks
        score_fn.assert_not_called()


class TestPrioritizeRanking:
    """Ranking by model-assigned scores."""

    @pytest.mark.asyncio
    async def test_highest_scores_selected_in_score_order(self):
        chunks = _chunks(5, length=900)
        score_fn = AsyncMock(return_value=_scores([(0, 2), (1, 9), (2, 4), (3, 10), (4, 1)]))

        result = await prioritize_chunks(chunks, "topic", 2, score_fn)

        assert [chunk.index for chunk in result] == [3, 1]
        # Selected chunks keep their full text, not the prompt preview
        assert all(len(chunk.text) == 900 for chunk in result)
        score_fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_code_fenced_response(self):
        chunks = _chunks(3)
        raw = f"```json\n{_scores([(0, 1), (1, 2), (2, 8)])}\n```"

        result = await prioritize_chunks(chunks, "topic", 1, AsyncMock(return_value=raw))

        assert [chunk.index for chunk in result] == [2]

    @pytest.mark.asyncio
    async def test_missing_entries_score_neutral(self):
        """Chunks the model skipped rank with score 5."""
        chunks = _chunks(3)
        score_fn = AsyncMock(return_value=_scores([(0, 3), (1, 8)]))

        result = await prioritize_chunks(chunks, "topic", 2, score_fn)

        assert [chunk.index for chunk in result] == [1, 2]

    @pytest.mark.asyncio
    async def test_unknown_indexes_ignored(self):
        chunks = _chunks(3)
        score_fn = AsyncMock(return_value=_scores([(7, 10), (2, 9)]))

        result = await prioritize_chunks(chunks, "topic", 1, score_fn)

        assert [chunk.index for chunk in result] == [2]

    def test_ties_keep_original_order(self):
        chunks = _chunks(4)
        priorities = [ChunkPriority(chunk_index=i, score=6) for i in range(4)]
        assert [chunk.index for chunk in rank_chunks(chunks, priorities, 3)] == [0, 1, 2]


class TestPrioritizeFallback:
    """Scoring failures degrade to the first ``limit`` chunks."""

    @pytest.mark.asyncio
    async def test_call_failure_returns_first_limit_chunks(self):
        chunks = _chunks(6)
        score_fn = AsyncMock(side_effect=UpstreamCallError("service down", status_code=503))

        result = await prioritize_chunks(chunks, "topic", 3, score_fn)

        assert result == chunks[:3]

    @pytest.mark.asyncio
    async def test_malformed_output_returns_first_limit_chunks(self):
        chunks = _chunks(4)
        score_fn = AsyncMock(return_value="I think chunk 2 is the best one.")

        result = await prioritize_chunks(chunks, "topic", 2, score_fn)

        assert result == chunks[:2]

    @pytest.mark.asyncio
    async def test_entry_missing_key_returns_first_limit_chunks(self):
        chunks = _chunks(4)
        score_fn = AsyncMock(return_value='[{"chunk_index": 3, "score": 9}, {"score": 2}]')

        result = await prioritize_chunks(chunks, "topic", 2, score_fn)

        assert result == chunks[:2]

    @pytest.mark.asyncio
    async def test_timeout_returns_first_limit_chunks(self):
        chunks = _chunks(4)

        async def slow_score(prompt):
            await asyncio.sleep(1.0)
            return _scores([(3, 10)])

        result = await prioritize_chunks(chunks, "topic", 1, slow_score, timeout=0.01)

        assert result == chunks[:1]

    @pytest.mark.asyncio
    async def test_task_cancellation_is_not_swallowed(self):
        score_fn = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await prioritize_chunks(_chunks(4), "topic", 2, score_fn)


class TestPrioritizationPrompt:
    """Prompt construction and response parsing."""

    def test_prompt_contains_previews_and_topic(self):
        chunks = [
            Chunk(index=0, source_kind=SourceKind.MAIN, text="alpha " * 50),
            Chunk(index=1, source_kind=SourceKind.MAIN, text="beta " * 50),
        ]

        prompt = build_prioritization_prompt(chunks, "Greek letters", preview_chars=12)

        assert "Greek letters" in prompt
        assert "--- Chunk 0 ---\nalpha alpha " in prompt
        assert "--- Chunk 1 ---\nbeta beta be" in prompt
        assert "alpha " * 3 not in prompt

    def test_parse_priorities_rejects_non_array(self):
        with pytest.raises(MalformedModelOutputError):
            parse_priorities('{"chunk_index": 0, "score": 3}')


class TestChunkPrioritizer:
    """ChunkPrioritizer bound to a model caller."""

    @pytest.mark.asyncio
    async def test_issues_single_scoring_call(self, make_fake_model):
        model = make_fake_model(responder=lambda model_id, messages, options: _scores([(1, 10)]))
        prioritizer = ChunkPrioritizer(model, "test-model", {"temperature": 0.2})

        result = await prioritizer.prioritize(_chunks(3), "topic", 1)

        assert [chunk.index for chunk in result] == [1]
        assert len(model.calls) == 1
        call = model.calls[0]
        assert call["model_id"] == "test-model"
        assert call["options"] == {"temperature": 0.2}
        assert call["messages"][0]["role"] == "system"
        assert "chunk_index" in call["messages"][-1]["content"]
