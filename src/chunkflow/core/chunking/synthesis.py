"""Reduction of partial results into one final output.

The common case is a single synthesis call over all partial results. When
the joined partial results exceed the per-call budget, they are re-chunked
and synthesized as a batch (the Synthesis stage), and the batch outputs are
joined with the configured JoinStrategy.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, Optional

from chunkflow.core.errors.pipeline import MalformedModelOutputError
from chunkflow.core.llm.response_parsing import parse_json_array
from chunkflow.core.llm.types import (
    CallModel,
    SynthesisPromptTemplate,
    build_messages,
    message_overhead,
)

from .constants import (
    DEFAULT_MAX_SYNTHESIS_DEPTH,
    DEFAULT_SYNTHESIS_CONCURRENCY,
    PARTIAL_RESULT_SEPARATOR,
)
from .executor import BatchExecutor
from .models import (
    CancellationToken,
    CharBudget,
    JoinStrategy,
    ProgressCallback,
    ProgressEvent,
    Stage,
)
from .partitioner import partition

logger = logging.getLogger(__name__)


def join_partial_results(parts: Sequence[str]) -> str:
    """Drop blank parts and join the rest with the partial-result separator."""
    return PARTIAL_RESULT_SEPARATOR.join(part for part in parts if part and part.strip())


def merge_json_arrays(parts: Sequence[str]) -> str:
    """Concatenate JSON-array parts element-wise into one JSON array.

    Each part may be wrapped in a markdown code fence. Blank parts are
    skipped, and an empty string is returned when every part is blank. If
    any part is not a JSON array, the parts are joined as text instead; a
    partially invalid merge is preferred over failing the run.

    Example:
        merge_json_arrays(['[{"id":"a"}]', '```json\\n[{"id":"b"}]\\n```'])
        # '[{"id":"a"},{"id":"b"}]'
    """
    merged: list[Any] = []
    present = False
    for position, part in enumerate(parts):
        if not part or not part.strip():
            continue
        present = True
        try:
            merged.extend(parse_json_array(part))
        except MalformedModelOutputError as e:
            logger.warning(
                f"JSON merge fell back to concatenation: part {position + 1}/{len(parts)} "
                f"is not a JSON array ({e})"
            )
            return join_partial_results(parts)
    if not present:
        return ""
    return json.dumps(merged, ensure_ascii=False, separators=(",", ":"))


class SynthesisReducer:
    """Combine partial results into a final result with bounded re-chunking.

    Attributes:
        budget: Model input ceiling and safety margin; the template overhead
            is computed from the synthesis prompt and system prompt
        join_strategy: Terminal join for chunked synthesis
        concurrency: Wave size for chunked synthesis
        max_depth: Chunked synthesis passes allowed (1 = a single pass)

    Example:
        reducer = SynthesisReducer(
            client.call_model,
            "openai",
            system_prompt="You are a master synthesizer.",
            prompt_template=lambda partial: f"Combine these:\\n{partial}",
            budget=CharBudget(max_chars=5000),
        )
        final = await reducer.reduce(partial_results)
    """

    def __init__(
        self,
        call_model: CallModel,
        model_id: str,
        *,
        system_prompt: str,
        prompt_template: SynthesisPromptTemplate,
        budget: CharBudget,
        options: Optional[dict[str, Any]] = None,
        join_strategy: JoinStrategy = JoinStrategy.CONCAT,
        concurrency: int = DEFAULT_SYNTHESIS_CONCURRENCY,
        max_depth: int = DEFAULT_MAX_SYNTHESIS_DEPTH,
    ):
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")
        self._call_model = call_model
        self._model_id = model_id
        self._options = dict(options or {})
        self.system_prompt = system_prompt
        self.prompt_template = prompt_template
        self.budget = budget
        self.join_strategy = JoinStrategy(join_strategy)
        self.concurrency = concurrency
        self.max_depth = max_depth

    def available_chars(self, goal_context: str = "") -> int:
        """Characters of partial results that fit in one synthesis call."""
        overhead = len(self.prompt_template("")) + message_overhead(
            self.system_prompt, context=goal_context
        )
        return self.budget.with_overhead(overhead).available_chars

    def join(self, parts: Sequence[str]) -> str:
        """Apply the terminal join strategy to synthesized parts."""
        if self.join_strategy == JoinStrategy.JSON_ARRAY_MERGE:
            return merge_json_arrays(parts)
        return join_partial_results(parts)

    async def _synthesize(self, partial_text: str, goal_context: str) -> str:
        messages = build_messages(
            self.system_prompt,
            self.prompt_template(partial_text),
            context=goal_context or None,
        )
        return await self._call_model(self._model_id, messages, dict(self._options))

    async def reduce(
        self,
        partial_results: Sequence[str],
        goal_context: str = "",
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Reduce partial results to one string.

        Args:
            partial_results: Outputs of the processing stage
            goal_context: Optional goal sent as an extra system message
            on_progress: Receives Synthesis-stage progress events
            cancel_token: Cooperative cancellation flag

        Returns:
            Final synthesized text, or an empty string when every partial
            result is blank

        Raises:
            PipelineCancelledError: If cancelled at a wave boundary
            Exception: Failures of the model caller, unchanged
        """
        return await self._reduce(partial_results, goal_context, 0, 0, on_progress, cancel_token)

    async def _reduce(
        self,
        parts: Sequence[str],
        goal_context: str,
        depth: int,
        offset: int,
        on_progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> str:
        # offset: synthesis calls completed by earlier passes
        joined = join_partial_results(parts)
        if not joined:
            return ""

        available = self.available_chars(goal_context)

        if len(joined) <= available:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(stage=Stage.SYNTHESIS, total=1)
            _emit(on_progress, 0, 1, offset)
            result = await self._synthesize(joined, goal_context)
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(stage=Stage.SYNTHESIS, total=1)
            _emit(on_progress, 1, 1, offset)
            return result

        chunks = [chunk.text for chunk in partition(joined, available)]
        logger.info(
            f"Synthesis input is too large ({len(joined)} > {available} chars); "
            f"synthesizing {len(chunks)} chunks (pass {depth + 1}/{self.max_depth})"
        )
        _emit(on_progress, 0, len(chunks), offset)

        executor: BatchExecutor[str, str] = BatchExecutor(self.concurrency, name="synthesis")
        outputs = await executor.run(
            chunks,
            execute=lambda text: self._synthesize(text, goal_context),
            on_progress=_offset_progress(on_progress, offset),
            cancel_token=cancel_token,
            stage=Stage.SYNTHESIS,
        )

        combined_length = len(join_partial_results(outputs))
        if depth + 1 < self.max_depth:
            if len(outputs) > 1 and combined_length < len(joined):
                return await self._reduce(
                    outputs,
                    goal_context,
                    depth + 1,
                    offset + len(chunks),
                    on_progress,
                    cancel_token,
                )
        elif self.max_depth > 1 and combined_length > available:
            logger.warning(
                f"Synthesis depth limit ({self.max_depth}) reached with "
                f"{combined_length} chars still above the {available}-char budget; "
                "returning joined parts"
            )

        return self.join(outputs)


def _emit(
    on_progress: Optional[ProgressCallback], completed: int, total: int, offset: int = 0
) -> None:
    if on_progress is not None:
        on_progress(
            ProgressEvent(
                completed=offset + completed, total=offset + total, stage=Stage.SYNTHESIS
            )
        )


def _offset_progress(
    on_progress: Optional[ProgressCallback], offset: int
) -> Optional[ProgressCallback]:
    """Shift a later pass's events past the calls of earlier passes."""
    if on_progress is None or offset == 0:
        return on_progress
    return lambda event: _emit(on_progress, event.completed, event.total, offset)
