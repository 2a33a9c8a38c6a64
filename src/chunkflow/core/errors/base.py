"""Error-to-ErrorCode mapping registry.

Lets callers turn a pipeline failure into a structured response and tell
"stopped by user" apart from "service error".

Usage:
    from chunkflow.core.errors.base import error_to_response

    try:
        output = await pipeline.process_and_synthesize(...)
    except Exception as e:
        result = error_to_response(e)
        if result is not None:
            return result
        raise  # Unknown error, re-raise
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from chunkflow.core.errors.pipeline import (
    InvalidChunkSizeError,
    MalformedModelOutputError,
    PipelineCancelledError,
)
from chunkflow.core.errors.upstream import (
    UpstreamAuthenticationError,
    UpstreamCallError,
    UpstreamRateLimitError,
)


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    CANCELLED = "CANCELLED"
    AI_PROVIDER_ERROR = "AI_PROVIDER_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_FORMAT = "INVALID_FORMAT"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class ErrorType(str, Enum):
    """Error categories for routing user-facing messages."""

    CANCELLED = "cancelled"
    AI_PROVIDER = "ai_provider"
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"


ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, ErrorType]] = {
    # --- Pipeline errors ---
    PipelineCancelledError: (ErrorCode.CANCELLED, ErrorType.CANCELLED),
    MalformedModelOutputError: (ErrorCode.INVALID_FORMAT, ErrorType.VALIDATION),
    InvalidChunkSizeError: (ErrorCode.VALIDATION_ERROR, ErrorType.VALIDATION),
    # --- Upstream errors ---
    UpstreamCallError: (ErrorCode.AI_PROVIDER_ERROR, ErrorType.AI_PROVIDER),
    UpstreamRateLimitError: (ErrorCode.RATE_LIMIT_EXCEEDED, ErrorType.RATE_LIMIT),
    UpstreamAuthenticationError: (ErrorCode.UNAUTHORIZED, ErrorType.AUTHENTICATION),
}


def error_to_response(exc: Exception) -> Optional[Dict[str, Any]]:
    """Convert a known exception to a standard error response dict, or None if unknown.

    Looks up the exception's *exact* type in ERROR_MAPPINGS.

    Args:
        exc: The exception to convert.

    Returns:
        ``{"success": False, "error": ..., "data": {"error_code": ..., "error_type": ...}}``,
        or None if the exception type is not registered.
    """
    mapping = ERROR_MAPPINGS.get(type(exc))
    if mapping is None:
        return None

    code, error_type = mapping
    data: Dict[str, Any] = {
        "error_code": code.value,
        "error_type": error_type.value,
    }
    if isinstance(exc, PipelineCancelledError) and exc.stage is not None:
        data["stage"] = exc.stage.value
    if isinstance(exc, UpstreamCallError) and exc.status_code is not None:
        data["status_code"] = exc.status_code
    return {"success": False, "error": str(exc), "data": data}
