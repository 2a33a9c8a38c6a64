"""End-to-end chunked processing and synthesis.

Runs one invocation through the stages::

    Idle -> Partitioning -> (Prioritizing) -> Processing -> Synthesizing -> Done

with Cancelled reachable from every non-terminal state and Failed reachable
on unrecoverable errors. Prioritization failures never fail a run.

Example usage:
    pipeline = ChunkedPipeline(client.call_model, "openai")
    result = await pipeline.run(
        document_text,
        "Extract every action item",
        processing_system_prompt="You are a meticulous analyst.",
        processing_prompt_template=lambda doc, goal: f"Goal: {goal}\\n\\nText:\\n{doc}",
        synthesis_system_prompt="You are a master synthesizer.",
        synthesis_prompt_template=lambda partial: f"Combine these notes:\\n{partial}",
        limits=ChunkLimits(main_limit=3),
    )
    print(result.output, result.total_calls)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Optional

from chunkflow.core.errors.pipeline import PipelineCancelledError
from chunkflow.core.llm.types import (
    CallModel,
    ChatMessage,
    ProcessingPromptTemplate,
    SynthesisPromptTemplate,
    build_messages,
)

from .cross_product import cross_product
from .executor import BatchExecutor
from .models import (
    CallEstimate,
    CancellationToken,
    CharBudget,
    ChunkLimits,
    JoinStrategy,
    PipelineResult,
    PipelineState,
    ProgressCallback,
    ProgressEvent,
    SplitStrategy,
    Stage,
    WorkUnit,
)
from .partitioner import partition_inputs
from .prioritizer import ChunkPrioritizer
from .synthesis import SynthesisReducer

if TYPE_CHECKING:
    from chunkflow.config.pipeline import PipelineConfig

logger = logging.getLogger(__name__)


class _CountingCaller:
    """Model caller wrapper that counts issued calls for one stage."""

    def __init__(self, call_model: CallModel):
        self._call_model = call_model
        self.calls = 0

    async def __call__(
        self, model_id: str, messages: list[ChatMessage], options: dict[str, Any]
    ) -> str:
        self.calls += 1
        return await self._call_model(model_id, messages, options)


class ChunkedPipeline:
    """Chunked request/response pipeline around a single model caller.

    The pipeline keeps no state between invocations; counters, progress,
    and the cancellation token all belong to one ``run`` call.

    Attributes:
        model_id: Model id passed to every call
        config: Pipeline settings (concurrency, budgets, strategies)
        max_chars: The model's input ceiling; ``config.max_input_chars`` when None
    """

    def __init__(
        self,
        call_model: CallModel,
        model_id: str,
        config: Optional[PipelineConfig] = None,
        *,
        options: Optional[dict[str, Any]] = None,
        max_chars: Optional[int] = None,
    ):
        if config is None:
            from chunkflow.config.pipeline import PipelineConfig

            config = PipelineConfig()
        self._call_model = call_model
        self.model_id = model_id
        self.config = config
        self.options = dict(options or {})
        self.max_chars = max_chars

    def processing_budget(
        self,
        processing_system_prompt: str,
        processing_prompt_template: ProcessingPromptTemplate,
    ) -> CharBudget:
        """Budget for one processing call given its prompt template."""
        overhead = len(processing_prompt_template("", "")) + len(processing_system_prompt)
        return self.config.budget(self.max_chars).with_overhead(overhead)

    def estimate(
        self,
        main_content: str,
        auxiliary_context: str,
        *,
        processing_system_prompt: str,
        processing_prompt_template: ProcessingPromptTemplate,
    ) -> CallEstimate:
        """Count the processing calls a run would issue, before any limits.

        Callers compare ``estimate.requires_confirmation(config.confirmation_threshold)``
        to decide whether to ask the user for ``ChunkLimits`` first.
        """
        budget = self.processing_budget(processing_system_prompt, processing_prompt_template)
        main_chunks, aux_chunks = partition_inputs(
            main_content, auxiliary_context, budget, SplitStrategy(self.config.split_strategy)
        )
        return CallEstimate(main_count=len(main_chunks), aux_count=len(aux_chunks))

    async def run(
        self,
        main_content: str,
        auxiliary_context: str,
        *,
        processing_system_prompt: str,
        processing_prompt_template: ProcessingPromptTemplate,
        synthesis_system_prompt: str,
        synthesis_prompt_template: SynthesisPromptTemplate,
        limits: Optional[ChunkLimits] = None,
        relevance_topic: Optional[str] = None,
        goal_context: str = "",
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        join_strategy: Optional[JoinStrategy] = None,
    ) -> PipelineResult:
        """Process both inputs chunk by chunk and synthesize one result.

        Args:
            main_content: Primary text (e.g. a document)
            auxiliary_context: Secondary text (e.g. a goal or reference material)
            processing_system_prompt: System prompt for every processing call
            processing_prompt_template: Renders (main_chunk, aux_chunk) into a prompt
            synthesis_system_prompt: System prompt for synthesis calls
            synthesis_prompt_template: Renders joined partial results into a prompt
            limits: Caps on surviving main/auxiliary chunks
            relevance_topic: Topic used to rank chunks when limits apply;
                defaults to ``goal_context`` or the auxiliary context
            goal_context: Extra system message for synthesis calls
            on_progress: Receives ProgressEvents for both stages
            cancel_token: Cooperative cancellation flag for this run
            join_strategy: Overrides ``config.join_strategy``

        Returns:
            PipelineResult with the final output and call counts

        Raises:
            PipelineCancelledError: If the token was set at a wave boundary
            Exception: Failures of the model caller, unchanged
        """
        state = PipelineState.IDLE
        processing_caller = _CountingCaller(self._call_model)
        prioritization_caller = _CountingCaller(self._call_model)
        synthesis_caller = _CountingCaller(self._call_model)
        warnings: list[str] = []

        def transition(new_state: PipelineState) -> None:
            nonlocal state
            logger.debug(f"Pipeline state {state.value} -> {new_state.value}")
            state = new_state

        def check_cancelled(stage: Optional[Stage] = None) -> None:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(stage=stage)

        try:
            check_cancelled()
            transition(PipelineState.PARTITIONING)
            budget = self.processing_budget(processing_system_prompt, processing_prompt_template)
            main_chunks, aux_chunks = partition_inputs(
                main_content,
                auxiliary_context,
                budget,
                SplitStrategy(self.config.split_strategy),
            )
            estimate = CallEstimate(main_count=len(main_chunks), aux_count=len(aux_chunks))
            logger.info(
                f"Partitioned inputs into {estimate.main_count} main x "
                f"{estimate.aux_count} auxiliary chunks ({estimate.total} estimated calls, "
                f"{budget.available_chars} chars per call)"
            )
            if limits is None and estimate.requires_confirmation(self.config.confirmation_threshold):
                warnings.append(
                    f"{estimate.total} estimated calls exceed the confirmation threshold "
                    f"of {self.config.confirmation_threshold} and no chunk limits were given"
                )

            if limits is not None and (
                ChunkLimits.reduces(limits.main_limit, len(main_chunks))
                or ChunkLimits.reduces(limits.aux_limit, len(aux_chunks))
            ):
                check_cancelled()
                transition(PipelineState.PRIORITIZING)
                topic = self._relevance_topic(relevance_topic, goal_context, auxiliary_context)
                prioritizer = ChunkPrioritizer(
                    prioritization_caller,
                    self.model_id,
                    self.options,
                    preview_chars=self.config.priority_preview_chars,
                    timeout=self.config.prioritization_timeout,
                )
                main_chunks = await prioritizer.prioritize(main_chunks, topic, limits.main_limit)
                aux_chunks = await prioritizer.prioritize(aux_chunks, topic, limits.aux_limit)

            transition(PipelineState.PROCESSING)
            units = cross_product(main_chunks, aux_chunks)
            logger.info(f"Processing {len(units)} work units")
            check_cancelled(Stage.PROCESSING)
            if on_progress is not None:
                on_progress(ProgressEvent(completed=0, total=len(units), stage=Stage.PROCESSING))

            async def process(unit: WorkUnit) -> str:
                messages = build_messages(
                    processing_system_prompt,
                    processing_prompt_template(unit.main_chunk, unit.aux_chunk),
                )
                return await processing_caller(self.model_id, messages, dict(self.options))

            executor: BatchExecutor[WorkUnit, str] = BatchExecutor(
                self.config.processing_concurrency, name="processing"
            )
            partial_results = await executor.run(
                units,
                process,
                on_progress=on_progress,
                cancel_token=cancel_token,
                stage=Stage.PROCESSING,
            )

            transition(PipelineState.SYNTHESIZING)
            reducer = SynthesisReducer(
                synthesis_caller,
                self.model_id,
                system_prompt=synthesis_system_prompt,
                prompt_template=synthesis_prompt_template,
                budget=self.config.budget(self.max_chars),
                options=self.options,
                join_strategy=join_strategy or JoinStrategy(self.config.join_strategy),
                concurrency=self.config.synthesis_concurrency,
                max_depth=self.config.max_synthesis_depth,
            )
            output = await reducer.reduce(
                partial_results,
                goal_context,
                on_progress=on_progress,
                cancel_token=cancel_token,
            )
            transition(PipelineState.DONE)
        except (PipelineCancelledError, asyncio.CancelledError):
            logger.info(f"Pipeline cancelled during {state.value}")
            transition(PipelineState.CANCELLED)
            raise
        except Exception as e:
            logger.error(f"Pipeline failed during {state.value}: {e}")
            transition(PipelineState.FAILED)
            raise

        result = PipelineResult(
            output=output,
            state=state,
            estimate=estimate,
            processing_calls=processing_caller.calls,
            synthesis_calls=synthesis_caller.calls,
            prioritization_calls=prioritization_caller.calls,
            warnings=warnings,
        )
        logger.info(
            f"Pipeline done: {result.total_calls} calls "
            f"({result.processing_calls} processing, {result.synthesis_calls} synthesis, "
            f"{result.prioritization_calls} prioritization)"
        )
        return result

    async def process_and_synthesize(
        self,
        main_content: str,
        auxiliary_context: str,
        **kwargs: Any,
    ) -> str:
        """Run the pipeline and return only the final output; see ``run``."""
        result = await self.run(main_content, auxiliary_context, **kwargs)
        return result.output

    def _relevance_topic(
        self,
        relevance_topic: Optional[str],
        goal_context: str,
        auxiliary_context: str,
    ) -> str:
        topic = relevance_topic or goal_context or auxiliary_context or ""
        return topic[: self.config.priority_preview_chars]
