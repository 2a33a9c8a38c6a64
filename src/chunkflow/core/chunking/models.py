"""Data models for chunked request/response processing.

Provides the enums, dataclasses, and type aliases shared by the chunking
components.

Key Components:
    - CharBudget: Per-call character ceiling minus template overhead and margin
    - Chunk / SourceKind: Bounded slices of the main or auxiliary input
    - ChunkPriority: Validated relevance score returned by the scoring call
    - ChunkLimits: Caller-imposed caps on how many chunks survive per side
    - WorkUnit: One (main chunk, auxiliary chunk) pairing
    - ProgressEvent / Stage: Progress reporting per pipeline stage
    - CallEstimate: Chunk counts and estimated calls before dispatch
    - CancellationToken: Cooperative cancellation flag for one invocation
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from chunkflow.core.errors.pipeline import PipelineCancelledError

from .constants import (
    DEFAULT_CONFIRMATION_THRESHOLD,
    DEFAULT_SAFETY_MARGIN_CHARS,
    MAX_PRIORITY_SCORE,
    MIN_PRIORITY_SCORE,
    NEUTRAL_PRIORITY_SCORE,
)


class SourceKind(str, Enum):
    """Which caller input a chunk was cut from."""

    MAIN = "main"
    AUXILIARY = "auxiliary"


class Stage(str, Enum):
    """Pipeline stage a progress event belongs to."""

    PROCESSING = "processing"
    SYNTHESIS = "synthesis"


class SplitStrategy(str, Enum):
    """How the available budget is divided between main and auxiliary chunks.

    HALF gives each side half of the budget. PROPORTIONAL splits it by the
    relative length of the two inputs.
    """

    HALF = "half"
    PROPORTIONAL = "proportional"


class JoinStrategy(str, Enum):
    """Terminal join for chunked synthesis output."""

    CONCAT = "concat"
    JSON_ARRAY_MERGE = "json_array_merge"


class PipelineState(str, Enum):
    """Lifecycle of one pipeline invocation."""

    IDLE = "idle"
    PARTITIONING = "partitioning"
    PRIORITIZING = "prioritizing"
    PROCESSING = "processing"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.CANCELLED, PipelineState.FAILED)


@dataclass(frozen=True)
class CharBudget:
    """Character budget for a single model call.

    Attributes:
        max_chars: Hard input ceiling of the model, in characters
        template_overhead_chars: Characters consumed by the prompt template
            and system prompt with empty content slots
        safety_margin_chars: Buffer kept free below the ceiling

    Example:
        budget = CharBudget(max_chars=5000, template_overhead_chars=200)
        budget.available_chars  # 4300
    """

    max_chars: int
    template_overhead_chars: int = 0
    safety_margin_chars: int = DEFAULT_SAFETY_MARGIN_CHARS

    def __post_init__(self) -> None:
        if self.max_chars <= 0:
            raise ValueError(f"max_chars must be positive, got {self.max_chars}")
        if self.template_overhead_chars < 0:
            raise ValueError(
                f"template_overhead_chars must be non-negative, got {self.template_overhead_chars}"
            )
        if self.safety_margin_chars < 0:
            raise ValueError(
                f"safety_margin_chars must be non-negative, got {self.safety_margin_chars}"
            )

    @property
    def available_chars(self) -> int:
        """Characters left for content, never below 1."""
        return max(
            1, self.max_chars - self.template_overhead_chars - self.safety_margin_chars
        )

    def with_overhead(self, template_overhead_chars: int) -> "CharBudget":
        """Return a copy of this budget for a different prompt template."""
        return CharBudget(
            max_chars=self.max_chars,
            template_overhead_chars=template_overhead_chars,
            safety_margin_chars=self.safety_margin_chars,
        )


@dataclass(frozen=True)
class Chunk:
    """A bounded slice of a caller input.

    Attributes:
        index: Position of the chunk in the original text's offset order
        source_kind: Input the chunk was cut from
        text: Chunk content
    """

    index: int
    source_kind: SourceKind
    text: str

    def preview(self, max_chars: int) -> str:
        return self.text[:max_chars]


class ChunkPriority(BaseModel):
    """Relevance score for one chunk, as returned by the scoring call.

    Both keys are required. A score that is not a number in [1, 10] is
    replaced by the neutral score instead of rejecting the whole response.
    """

    model_config = ConfigDict(extra="ignore")

    chunk_index: int
    score: float

    @field_validator("score", mode="before")
    @classmethod
    def _neutral_when_invalid(cls, value: object) -> float:
        if isinstance(value, bool):
            return NEUTRAL_PRIORITY_SCORE
        try:
            score = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return NEUTRAL_PRIORITY_SCORE
        if not MIN_PRIORITY_SCORE <= score <= MAX_PRIORITY_SCORE:
            return NEUTRAL_PRIORITY_SCORE
        return score


@dataclass(frozen=True)
class ChunkLimits:
    """Caller-imposed caps on surviving chunks; 0 means no limit."""

    main_limit: int = 0
    aux_limit: int = 0

    def __post_init__(self) -> None:
        if self.main_limit < 0 or self.aux_limit < 0:
            raise ValueError(
                f"chunk limits must be non-negative, got main={self.main_limit} aux={self.aux_limit}"
            )

    @staticmethod
    def reduces(limit: int, count: int) -> bool:
        """Check whether ``limit`` would actually drop chunks from ``count``."""
        return 0 < limit < count


@dataclass(frozen=True)
class WorkUnit:
    """One main/auxiliary chunk pairing, dispatched as a single model call."""

    main_chunk: str
    aux_chunk: str


@dataclass(frozen=True)
class ProgressEvent:
    """Progress of one stage.

    ``completed`` never decreases within a stage; ``total`` is fixed once
    the stage's work units are known.
    """

    completed: int
    total: int
    stage: Stage

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0
        return self.completed / self.total


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class CallEstimate:
    """Chunk counts for a pair of inputs, computed before any call is made.

    Attributes:
        main_count: Number of main-content chunks
        aux_count: Number of auxiliary-context chunks
        total: Estimated processing calls (main_count * aux_count)
    """

    main_count: int
    aux_count: int

    @property
    def total(self) -> int:
        return self.main_count * self.aux_count

    def requires_confirmation(self, threshold: int = DEFAULT_CONFIRMATION_THRESHOLD) -> bool:
        """Check whether the call count is large enough to ask the user for limits."""
        return self.total > threshold

    def limited(self, limits: Optional[ChunkLimits]) -> "CallEstimate":
        """Return the estimate after applying caller limits."""
        if limits is None:
            return self
        main = limits.main_limit if ChunkLimits.reduces(limits.main_limit, self.main_count) else self.main_count
        aux = limits.aux_limit if ChunkLimits.reduces(limits.aux_limit, self.aux_count) else self.aux_count
        return CallEstimate(main_count=main, aux_count=aux)


@dataclass
class PipelineResult:
    """Outcome of a completed pipeline invocation.

    Attributes:
        output: Final synthesized text (empty when every partial result was blank)
        state: Terminal state, always DONE for a returned result
        estimate: Chunk counts before prioritization
        processing_calls: Model calls issued in the processing stage
        synthesis_calls: Model calls issued in the synthesis stage
        prioritization_calls: Scoring calls issued (0, 1, or 2)
    """

    output: str
    state: PipelineState = PipelineState.DONE
    estimate: Optional[CallEstimate] = None
    processing_calls: int = 0
    synthesis_calls: int = 0
    prioritization_calls: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def total_calls(self) -> int:
        return self.processing_calls + self.synthesis_calls + self.prioritization_calls


class CancellationToken:
    """Cooperative cancellation flag owned by one pipeline invocation.

    The pipeline only reads the flag at wave boundaries; setting it never
    interrupts a model call that is already in flight.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(pipeline.process_and_synthesize(..., cancel_token=token))
        token.cancel()  # e.g. from a "stop" button handler
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(
        self,
        *,
        stage: Optional[Stage] = None,
        completed: int = 0,
        total: int = 0,
    ) -> None:
        """Raise PipelineCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise PipelineCancelledError(stage=stage, completed=completed, total=total)
