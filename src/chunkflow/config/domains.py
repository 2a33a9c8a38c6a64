"""Domain-specific configuration dataclasses.

Contains the model endpoint settings used to build the bundled
OpenAI-compatible caller.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from chunkflow.config.parsing import _optional_str, _parse_float, _parse_int

DEFAULT_BASE_URL = "https://text.pollinations.ai/openai"
DEFAULT_MODEL = "openai"


@dataclass
class ProviderConfig:
    """Configuration for the model endpoint.

    Attributes:
        base_url: OpenAI-compatible API base URL (without /chat/completions)
        api_key: Bearer token; None for anonymous endpoints
        model: Model id sent with every call
        timeout: Request timeout in seconds
        max_retries: Extra attempts for rate limits and 5xx responses
    """

    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = field(default=None, repr=False)
    model: str = DEFAULT_MODEL
    timeout: float = 120.0
    max_retries: int = 0

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        if not self.model:
            raise ValueError("model must not be empty")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {self.max_retries}")

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        """Create config from TOML dict (typically [provider] section).

        Args:
            data: Dict from TOML parsing

        Returns:
            ProviderConfig instance
        """
        return cls(
            base_url=str(data.get("base_url", DEFAULT_BASE_URL)),
            api_key=_optional_str(data.get("api_key")),
            model=str(data.get("model", DEFAULT_MODEL)),
            timeout=_parse_float(data.get("timeout", 120.0), "provider.timeout"),
            max_retries=_parse_int(data.get("max_retries", 0), "provider.max_retries"),
        )
