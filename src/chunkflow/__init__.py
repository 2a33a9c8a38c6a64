"""chunkflow: chunked processing and synthesis for size-limited model endpoints."""

from chunkflow.core.chunking import (
    CancellationToken,
    ChunkedPipeline,
    ChunkLimits,
    JoinStrategy,
    PipelineResult,
    ProgressEvent,
    Stage,
)
from chunkflow.core.errors import PipelineCancelledError, UpstreamCallError
from chunkflow.core.llm import OpenAICompatibleClient

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "ChunkLimits",
    "ChunkedPipeline",
    "JoinStrategy",
    "OpenAICompatibleClient",
    "PipelineCancelledError",
    "PipelineResult",
    "ProgressEvent",
    "Stage",
    "UpstreamCallError",
    "__version__",
]
