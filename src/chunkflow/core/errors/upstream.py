"""Model endpoint error classes.

Raised by the bundled ``OpenAICompatibleClient``. Caller-supplied model
functions may raise anything; the pipeline propagates those unchanged.
"""

from typing import Optional


class UpstreamCallError(RuntimeError):
    """Base exception for failed model calls (network, HTTP, or model error).

    Attributes:
        provider: Endpoint identifier (usually the base URL host)
        status_code: HTTP status code, if a response was received
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class UpstreamRateLimitError(UpstreamCallError):
    """Raised when the endpoint answers 429.

    Attributes:
        retry_after: Seconds to wait before retrying, if the endpoint said so
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, provider=provider, status_code=429)
        self.retry_after = retry_after


class UpstreamAuthenticationError(UpstreamCallError):
    """Raised when the endpoint rejects the API key (401/403)."""
