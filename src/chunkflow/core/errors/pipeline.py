"""Chunked pipeline error classes.

Covers the failures raised by the pipeline itself (as opposed to failures of
the model endpoint, which live in ``chunkflow.core.errors.upstream``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from chunkflow.core.chunking.models import Stage


class PipelineError(Exception):
    """Base exception for chunked pipeline errors."""

    pass


class PipelineCancelledError(PipelineError):
    """Raised when the caller's cancellation token is set.

    Checked only at wave boundaries, so in-flight model calls of the
    current wave may still have completed; their results are discarded.

    Attributes:
        stage: Stage that was running when cancellation was observed
        completed: Work units completed in that stage before stopping
        total: Total work units planned for that stage
    """

    def __init__(
        self,
        message: str = "Process stopped by user.",
        *,
        stage: Optional[Stage] = None,
        completed: int = 0,
        total: int = 0,
    ):
        self.stage = stage
        self.completed = completed
        self.total = total
        super().__init__(message)


class MalformedModelOutputError(PipelineError):
    """Raised when model output that must be JSON cannot be parsed.

    Attributes:
        raw: The unparsed model output
    """

    def __init__(self, message: str, *, raw: str = ""):
        self.raw = raw
        super().__init__(message)


class InvalidChunkSizeError(PipelineError, ValueError):
    """Raised when a chunk size below one character is requested."""

    def __init__(self, chunk_size: int):
        self.chunk_size = chunk_size
        super().__init__(f"chunk_size must be >= 1, got {chunk_size}")
