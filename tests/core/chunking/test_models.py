"""Tests for chunking data models."""

import pytest
from pydantic import ValidationError

from chunkflow.core.chunking.models import (
    CallEstimate,
    CancellationToken,
    CharBudget,
    Chunk,
    ChunkLimits,
    ChunkPriority,
    PipelineResult,
    PipelineState,
    ProgressEvent,
    SourceKind,
    Stage,
)
from chunkflow.core.errors import PipelineCancelledError


class TestCharBudget:
    """Tests for CharBudget."""

    def test_available_chars(self):
        budget = CharBudget(max_chars=5000, template_overhead_chars=200, safety_margin_chars=500)
        assert budget.available_chars == 4300

    def test_available_chars_clamped_to_one(self):
        """Overhead larger than the ceiling still leaves one character."""
        budget = CharBudget(max_chars=100, template_overhead_chars=200)
        assert budget.available_chars == 1

    def test_with_overhead_keeps_ceiling_and_margin(self):
        budget = CharBudget(max_chars=5000, safety_margin_chars=100)
        updated = budget.with_overhead(400)
        assert updated.max_chars == 5000
        assert updated.safety_margin_chars == 100
        assert updated.available_chars == 4500

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_chars": 0},
            {"max_chars": 100, "template_overhead_chars": -1},
            {"max_chars": 100, "safety_margin_chars": -1},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            CharBudget(**kwargs)


class TestChunk:
    """Tests for Chunk."""

    def test_preview_truncates(self):
        chunk = Chunk(index=0, source_kind=SourceKind.MAIN, text="abcdefgh")
        assert chunk.preview(3) == "abc"
        assert chunk.text == "abcdefgh"


class TestChunkPriority:
    """Tests for ChunkPriority validation."""

    def test_numeric_string_score_accepted(self):
        priority = ChunkPriority.model_validate({"chunk_index": 2, "score": "7"})
        assert priority.chunk_index == 2
        assert priority.score == 7.0

    @pytest.mark.parametrize("score", [0, 42, "high", None, True])
    def test_invalid_score_becomes_neutral(self, score):
        """Scores outside 1-10 or not numbers fall back to 5."""
        priority = ChunkPriority.model_validate({"chunk_index": 0, "score": score})
        assert priority.score == 5.0

    def test_missing_chunk_index_rejected(self):
        with pytest.raises(ValidationError):
            ChunkPriority.model_validate({"score": 3})

    def test_missing_score_rejected(self):
        with pytest.raises(ValidationError):
            ChunkPriority.model_validate({"chunk_index": 3})

    def test_extra_keys_ignored(self):
        priority = ChunkPriority.model_validate({"chunk_index": 1, "score": 9, "reason": "x"})
        assert priority.score == 9.0


class TestChunkLimits:
    """Tests for ChunkLimits."""

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            ChunkLimits(main_limit=-1)

    @pytest.mark.parametrize(
        "limit,count,expected",
        [(0, 6, False), (3, 6, True), (6, 6, False), (10, 6, False)],
    )
    def test_reduces(self, limit, count, expected):
        assert ChunkLimits.reduces(limit, count) is expected


class TestCallEstimate:
    """Tests for CallEstimate."""

    def test_confirmation_threshold_is_exclusive(self):
        assert not CallEstimate(main_count=5, aux_count=1).requires_confirmation(5)
        assert CallEstimate(main_count=3, aux_count=2).requires_confirmation(5)

    def test_limited_without_limits_is_unchanged(self):
        estimate = CallEstimate(main_count=4, aux_count=2)
        assert estimate.limited(None) is estimate

    def test_limited_applies_both_sides(self):
        estimate = CallEstimate(main_count=4, aux_count=3).limited(
            ChunkLimits(main_limit=2, aux_limit=1)
        )
        assert estimate.total == 2


class TestProgressAndResult:
    """Tests for ProgressEvent and PipelineResult."""

    def test_fraction(self):
        assert ProgressEvent(completed=2, total=8, stage=Stage.PROCESSING).fraction == 0.25

    def test_fraction_of_empty_stage(self):
        assert ProgressEvent(completed=0, total=0, stage=Stage.SYNTHESIS).fraction == 1.0

    def test_total_calls(self):
        result = PipelineResult(
            output="x", processing_calls=3, synthesis_calls=1, prioritization_calls=1
        )
        assert result.total_calls == 5
        assert result.state == PipelineState.DONE

    def test_terminal_states(self):
        assert PipelineState.DONE.is_terminal
        assert PipelineState.CANCELLED.is_terminal
        assert PipelineState.FAILED.is_terminal
        assert not PipelineState.PROCESSING.is_terminal


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_not_cancelled_by_default(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_raise_if_cancelled_carries_context(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(PipelineCancelledError) as exc_info:
            token.raise_if_cancelled(stage=Stage.SYNTHESIS, completed=2, total=4)
        assert exc_info.value.stage == Stage.SYNTHESIS
        assert exc_info.value.completed == 2
        assert exc_info.value.total == 4
        assert str(exc_info.value) == "Process stopped by user."
