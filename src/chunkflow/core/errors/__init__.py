"""Unified error hierarchy for chunkflow.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from chunkflow.core.errors import PipelineCancelledError, UpstreamCallError
    from chunkflow.core.errors import error_to_response
"""

# --- Base / Registry ---
from chunkflow.core.errors.base import (
    ERROR_MAPPINGS,
    ErrorCode,
    ErrorType,
    error_to_response,
)

# --- Pipeline errors ---
from chunkflow.core.errors.pipeline import (
    InvalidChunkSizeError,
    MalformedModelOutputError,
    PipelineCancelledError,
    PipelineError,
)

# --- Upstream errors ---
from chunkflow.core.errors.upstream import (
    UpstreamAuthenticationError,
    UpstreamCallError,
    UpstreamRateLimitError,
)

__all__ = [
    "ERROR_MAPPINGS",
    "ErrorCode",
    "ErrorType",
    "error_to_response",
    "InvalidChunkSizeError",
    "MalformedModelOutputError",
    "PipelineCancelledError",
    "PipelineError",
    "UpstreamAuthenticationError",
    "UpstreamCallError",
    "UpstreamRateLimitError",
]
