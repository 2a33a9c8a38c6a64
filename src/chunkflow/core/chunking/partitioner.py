"""Chunk partitioning for oversized inputs.

Splits main content and auxiliary context into contiguous, non-overlapping
chunks sized from a CharBudget, and estimates how many processing calls a
pair of inputs will need before anything is dispatched.
"""

from __future__ import annotations

import logging

from chunkflow.core.errors.pipeline import InvalidChunkSizeError

from .models import CallEstimate, CharBudget, Chunk, SourceKind, SplitStrategy

logger = logging.getLogger(__name__)


def partition(
    text: str,
    chunk_size: int,
    source_kind: SourceKind = SourceKind.MAIN,
) -> list[Chunk]:
    """Split text into ordered chunks of at most ``chunk_size`` characters.

    Concatenating the returned chunks reproduces ``text`` exactly. Empty
    text yields a single empty chunk so that cross-products downstream
    still produce at least one work unit.

    Args:
        text: Text to split
        chunk_size: Maximum characters per chunk (must be >= 1)
        source_kind: Input the text belongs to

    Returns:
        List of chunks in original offset order

    Raises:
        InvalidChunkSizeError: If chunk_size < 1
    """
    if chunk_size < 1:
        raise InvalidChunkSizeError(chunk_size)

    if not text:
        return [Chunk(index=0, source_kind=source_kind, text="")]

    return [
        Chunk(index=i, source_kind=source_kind, text=text[start : start + chunk_size])
        for i, start in enumerate(range(0, len(text), chunk_size))
    ]


def split_budget(
    main_length: int,
    aux_length: int,
    available_chars: int,
    strategy: SplitStrategy = SplitStrategy.HALF,
) -> tuple[int, int]:
    """Divide the available characters between main and auxiliary chunks.

    Args:
        main_length: Length of the main content
        aux_length: Length of the auxiliary context
        available_chars: Characters left for content in one call
        strategy: HALF or PROPORTIONAL

    Returns:
        Tuple of (main_chunk_size, aux_chunk_size), each at least 1
    """
    if strategy == SplitStrategy.PROPORTIONAL:
        total = main_length + aux_length
        main_ratio = main_length / total if total > 0 else 0.0
        main_size = int(available_chars * main_ratio)
        aux_size = int(available_chars * (1.0 - main_ratio))
        return max(1, main_size), max(1, aux_size)

    half = available_chars // 2
    return max(1, half), max(1, half)


def partition_inputs(
    main_content: str,
    auxiliary_context: str,
    budget: CharBudget,
    strategy: SplitStrategy = SplitStrategy.HALF,
) -> tuple[list[Chunk], list[Chunk]]:
    """Partition both caller inputs against one processing budget.

    When both inputs fit in a single call together, neither is split.

    Returns:
        Tuple of (main_chunks, aux_chunks)
    """
    main_content = main_content or ""
    auxiliary_context = auxiliary_context or ""
    available = budget.available_chars

    if len(main_content) + len(auxiliary_context) <= available:
        return (
            [Chunk(index=0, source_kind=SourceKind.MAIN, text=main_content)],
            [Chunk(index=0, source_kind=SourceKind.AUXILIARY, text=auxiliary_context)],
        )

    main_size, aux_size = split_budget(
        len(main_content), len(auxiliary_context), available, strategy
    )
    main_chunks = partition(main_content, main_size, SourceKind.MAIN)
    aux_chunks = partition(auxiliary_context, aux_size, SourceKind.AUXILIARY)

    logger.debug(
        f"Partitioned inputs: main={len(main_content)} chars -> {len(main_chunks)} chunks "
        f"of {main_size}, aux={len(auxiliary_context)} chars -> {len(aux_chunks)} chunks "
        f"of {aux_size} (available={available})"
    )
    return main_chunks, aux_chunks


def estimate_calls(
    main_content: str,
    auxiliary_context: str,
    budget: CharBudget,
    strategy: SplitStrategy = SplitStrategy.HALF,
) -> CallEstimate:
    """Estimate the processing calls a pair of inputs will need.

    Uses the same chunk sizes as ``partition_inputs``, so the estimate
    always matches the work units actually dispatched (before limits).

    Example:
        budget = CharBudget(max_chars=5000, template_overhead_chars=200)
        estimate = estimate_calls("x" * 12_000, "goal text", budget)
        estimate.main_count, estimate.aux_count, estimate.total  # (6, 1, 6)
    """
    main_chunks, aux_chunks = partition_inputs(
        main_content, auxiliary_context, budget, strategy
    )
    return CallEstimate(main_count=len(main_chunks), aux_count=len(aux_chunks))
