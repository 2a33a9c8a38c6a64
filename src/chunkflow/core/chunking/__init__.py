"""Chunked request/response processing for size-limited model endpoints.

Splits inputs that exceed a model's character budget into chunks, pairs
main and auxiliary chunks into work units, runs them in bounded waves, and
reduces the partial results into one output.

Key Components:
    - partition / partition_inputs / estimate_calls: Budget-driven chunking
    - ChunkPrioritizer: One-call relevance ranking under a chunk limit
    - cross_product: Main x auxiliary work unit generation
    - BatchExecutor: Wave-based execution with progress and cancellation
    - SynthesisReducer: Single-call or chunked reduction of partial results
    - ChunkedPipeline: The stages above, end to end

Usage:
    from chunkflow.core.chunking import ChunkedPipeline, ChunkLimits

    pipeline = ChunkedPipeline(client.call_model, "openai")
    output = await pipeline.process_and_synthesize(
        document_text,
        goal,
        processing_system_prompt=system,
        processing_prompt_template=render_chunk_prompt,
        synthesis_system_prompt=synthesis_system,
        synthesis_prompt_template=render_synthesis_prompt,
        limits=ChunkLimits(main_limit=3),
    )
"""

from .constants import (
    DEFAULT_MAX_INPUT_CHARS,
    DEFAULT_PROCESSING_CONCURRENCY,
    DEFAULT_SAFETY_MARGIN_CHARS,
    DEFAULT_SYNTHESIS_CONCURRENCY,
    PARTIAL_RESULT_SEPARATOR,
)
from .cross_product import cross_product
from .executor import BatchExecutor
from .models import (
    CallEstimate,
    CancellationToken,
    CharBudget,
    Chunk,
    ChunkLimits,
    ChunkPriority,
    JoinStrategy,
    PipelineResult,
    PipelineState,
    ProgressCallback,
    ProgressEvent,
    SourceKind,
    SplitStrategy,
    Stage,
    WorkUnit,
)
from .partitioner import estimate_calls, partition, partition_inputs, split_budget
from .pipeline import ChunkedPipeline
from .prioritizer import ChunkPrioritizer, prioritize_chunks
from .synthesis import SynthesisReducer, join_partial_results, merge_json_arrays

__all__ = [
    # Constants
    "DEFAULT_MAX_INPUT_CHARS",
    "DEFAULT_PROCESSING_CONCURRENCY",
    "DEFAULT_SAFETY_MARGIN_CHARS",
    "DEFAULT_SYNTHESIS_CONCURRENCY",
    "PARTIAL_RESULT_SEPARATOR",
    # Models
    "CallEstimate",
    "CancellationToken",
    "CharBudget",
    "Chunk",
    "ChunkLimits",
    "ChunkPriority",
    "JoinStrategy",
    "PipelineResult",
    "PipelineState",
    "ProgressCallback",
    "ProgressEvent",
    "SourceKind",
    "SplitStrategy",
    "Stage",
    "WorkUnit",
    # Components
    "BatchExecutor",
    "ChunkPrioritizer",
    "ChunkedPipeline",
    "SynthesisReducer",
    "cross_product",
    "estimate_calls",
    "join_partial_results",
    "merge_json_arrays",
    "partition",
    "partition_inputs",
    "prioritize_chunks",
    "split_budget",
]
