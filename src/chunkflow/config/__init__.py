"""Configuration for chunkflow.

Sub-modules:
    parsing  – value parsing helpers (_parse_bool, choices, log levels)
    domains  – ProviderConfig dataclass
    loader   – PipelineConfig TOML/env loading mixin (_PipelineConfigLoader)
    pipeline – PipelineConfig dataclass, setup_logging, get_config/set_config globals
"""

from chunkflow.config.domains import ProviderConfig  # noqa: F401
from chunkflow.config.parsing import _parse_bool  # noqa: F401
from chunkflow.config.pipeline import (  # noqa: F401
    PipelineConfig,
    get_config,
    set_config,
)

__all__ = [
    "PipelineConfig",
    "ProviderConfig",
    "get_config",
    "set_config",
]
