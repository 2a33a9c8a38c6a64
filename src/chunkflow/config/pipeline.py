"""Pipeline configuration.

Provides the ``PipelineConfig`` dataclass, logging setup, and the global
``get_config`` / ``set_config`` helpers. Loading logic lives in the
``_PipelineConfigLoader`` mixin (``loader.py``) which ``PipelineConfig``
inherits from.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from chunkflow.config.domains import ProviderConfig
from chunkflow.config.loader import (
    VALID_JOIN_STRATEGIES,
    VALID_SPLIT_STRATEGIES,
    _PipelineConfigLoader,
)
from chunkflow.core.chunking.constants import (
    DEFAULT_CONFIRMATION_THRESHOLD,
    DEFAULT_MAX_INPUT_CHARS,
    DEFAULT_MAX_SYNTHESIS_DEPTH,
    DEFAULT_PRIORITIZATION_TIMEOUT,
    DEFAULT_PROCESSING_CONCURRENCY,
    DEFAULT_SAFETY_MARGIN_CHARS,
    DEFAULT_SYNTHESIS_CONCURRENCY,
    PRIORITY_PREVIEW_CHARS,
)
from chunkflow.core.chunking.models import CharBudget, JoinStrategy, SplitStrategy
from chunkflow.core.llm.client import OpenAICompatibleClient

logger = logging.getLogger(__name__)

_PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_STRUCTURED_FORMAT = (
    '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
)


@dataclass
class PipelineConfig(_PipelineConfigLoader):
    """Settings for chunked processing and synthesis.

    Attributes:
        max_input_chars: Model input ceiling used when the caller supplies none
        safety_margin_chars: Buffer kept free below the ceiling
        processing_concurrency: Wave size for the processing stage
        synthesis_concurrency: Wave size for chunked synthesis
        priority_preview_chars: Characters of each chunk shown to the scoring call
        prioritization_timeout: Seconds before the scoring call is abandoned
            (None disables the timeout)
        confirmation_threshold: Estimated calls above which callers should
            confirm chunk limits before running
        split_strategy: "half" or "proportional"
        join_strategy: "concat" or "json_array_merge"
        max_synthesis_depth: Chunked synthesis passes allowed
        log_level: Level for the ``chunkflow`` logger
        structured_logging: Emit JSON-style log lines
        provider: Model endpoint settings
    """

    max_input_chars: int = DEFAULT_MAX_INPUT_CHARS
    safety_margin_chars: int = DEFAULT_SAFETY_MARGIN_CHARS
    processing_concurrency: int = DEFAULT_PROCESSING_CONCURRENCY
    synthesis_concurrency: int = DEFAULT_SYNTHESIS_CONCURRENCY
    priority_preview_chars: int = PRIORITY_PREVIEW_CHARS
    prioritization_timeout: Optional[float] = DEFAULT_PRIORITIZATION_TIMEOUT
    confirmation_threshold: int = DEFAULT_CONFIRMATION_THRESHOLD
    split_strategy: str = SplitStrategy.HALF.value
    join_strategy: str = JoinStrategy.CONCAT.value
    max_synthesis_depth: int = DEFAULT_MAX_SYNTHESIS_DEPTH
    log_level: str = "INFO"
    structured_logging: bool = False
    provider: ProviderConfig = field(default_factory=ProviderConfig)

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        if self.max_input_chars < 1:
            raise ValueError(f"max_input_chars must be >= 1, got {self.max_input_chars}")
        if self.safety_margin_chars < 0:
            raise ValueError(
                f"safety_margin_chars must be non-negative, got {self.safety_margin_chars}"
            )
        if self.processing_concurrency < 1:
            raise ValueError(
                f"processing_concurrency must be >= 1, got {self.processing_concurrency}"
            )
        if self.synthesis_concurrency < 1:
            raise ValueError(
                f"synthesis_concurrency must be >= 1, got {self.synthesis_concurrency}"
            )
        if self.priority_preview_chars < 1:
            raise ValueError(
                f"priority_preview_chars must be >= 1, got {self.priority_preview_chars}"
            )
        if self.prioritization_timeout is not None and self.prioritization_timeout <= 0:
            raise ValueError(
                f"prioritization_timeout must be positive, got {self.prioritization_timeout}"
            )
        if self.confirmation_threshold < 0:
            raise ValueError(
                f"confirmation_threshold must be non-negative, got {self.confirmation_threshold}"
            )
        if self.max_synthesis_depth < 1:
            raise ValueError(
                f"max_synthesis_depth must be >= 1, got {self.max_synthesis_depth}"
            )
        if self.split_strategy not in VALID_SPLIT_STRATEGIES:
            raise ValueError(f"Invalid split_strategy '{self.split_strategy}'")
        if self.join_strategy not in VALID_JOIN_STRATEGIES:
            raise ValueError(f"Invalid join_strategy '{self.join_strategy}'")

    def budget(self, max_chars: Optional[int] = None) -> CharBudget:
        """Character budget for a model, before template overhead.

        Args:
            max_chars: The model's published input ceiling, if known
        """
        return CharBudget(
            max_chars=max_chars or self.max_input_chars,
            safety_margin_chars=self.safety_margin_chars,
        )

    def build_client(self) -> OpenAICompatibleClient:
        """Create a model caller for the configured provider."""
        return OpenAICompatibleClient(
            self.provider.base_url,
            api_key=self.provider.api_key,
            timeout=self.provider.timeout,
            max_retries=self.provider.max_retries,
        )

    def setup_logging(self) -> None:
        """Configure the ``chunkflow`` logger; repeated calls replace the handler."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            formatter = logging.Formatter(_STRUCTURED_FORMAT)
        else:
            formatter = logging.Formatter(_PLAIN_FORMAT)

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        handler.set_name("chunkflow")

        root_logger = logging.getLogger("chunkflow")
        for existing in list(root_logger.handlers):
            if existing.get_name() == "chunkflow":
                root_logger.removeHandler(existing)
        root_logger.setLevel(level)
        root_logger.addHandler(handler)


# Global configuration instance
_config: Optional[PipelineConfig] = None


def get_config() -> PipelineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = PipelineConfig.from_env()
    return _config


def set_config(config: Optional[PipelineConfig]) -> None:
    """Set (or with None, reset) the global configuration instance."""
    global _config
    _config = config
