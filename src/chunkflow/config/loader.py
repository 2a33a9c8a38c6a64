"""Configuration loading for PipelineConfig.

Provides ``_PipelineConfigLoader``, a mixin class whose methods are inherited
by the ``PipelineConfig`` dataclass defined in ``pipeline.py``. Keeping the
TOML and environment parsing here keeps the dataclass itself short.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, cast

from chunkflow.config.domains import ProviderConfig
from chunkflow.config.parsing import (
    _normalize_choice,
    _normalize_log_level,
    _parse_bool,
    _parse_float,
    _parse_int,
)

if TYPE_CHECKING:
    from chunkflow.config.pipeline import PipelineConfig

logger = logging.getLogger(__name__)

VALID_SPLIT_STRATEGIES = {"half", "proportional"}
VALID_JOIN_STRATEGIES = {"concat", "json_array_merge"}

# [pipeline] keys holding integers
_INT_KEYS = (
    "max_input_chars",
    "safety_margin_chars",
    "processing_concurrency",
    "synthesis_concurrency",
    "priority_preview_chars",
    "confirmation_threshold",
    "max_synthesis_depth",
)

# Environment variable -> [pipeline] key
_INT_ENV_VARS = {
    "CHUNKFLOW_MAX_INPUT_CHARS": "max_input_chars",
    "CHUNKFLOW_SAFETY_MARGIN_CHARS": "safety_margin_chars",
    "CHUNKFLOW_PROCESSING_CONCURRENCY": "processing_concurrency",
    "CHUNKFLOW_SYNTHESIS_CONCURRENCY": "synthesis_concurrency",
}


class _PipelineConfigLoader:
    """Mixin providing TOML and environment loading for PipelineConfig."""

    if TYPE_CHECKING:
        max_input_chars: int
        safety_margin_chars: int
        processing_concurrency: int
        synthesis_concurrency: int
        priority_preview_chars: int
        prioritization_timeout: Optional[float]
        confirmation_threshold: int
        split_strategy: str
        join_strategy: str
        max_synthesis_depth: int
        log_level: str
        structured_logging: bool
        provider: ProviderConfig

        def _validate(self) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "PipelineConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. Explicit TOML file (``config_file`` or CHUNKFLOW_CONFIG_FILE), which
           replaces the layered files below
        3. Project TOML config (./chunkflow.toml)
        4. User TOML config (~/.chunkflow.toml)
        5. XDG config (~/.config/chunkflow/config.toml)
        6. Default values

        Raises:
            ValueError: If a TOML file is malformed or a value is invalid
        """
        config = cls()

        toml_path = config_file or os.environ.get("CHUNKFLOW_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
            xdg_config = Path(xdg_config_home) / "chunkflow" / "config.toml"
            if xdg_config.exists():
                config._load_toml(xdg_config)
                logger.debug(f"Loaded XDG config from {xdg_config}")

            home_config = Path.home() / ".chunkflow.toml"
            if home_config.exists():
                config._load_toml(home_config)
                logger.debug(f"Loaded user config from {home_config}")

            project_config = Path("chunkflow.toml")
            if project_config.exists():
                config._load_toml(project_config)
                logger.debug(f"Loaded project config from {project_config}")

        config._load_env()
        config._validate()

        return cast("PipelineConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in config file {path}: {e}") from e

        if "pipeline" in data:
            self._apply_pipeline_section(data["pipeline"])

        if "provider" in data:
            merged = {
                "base_url": self.provider.base_url,
                "api_key": self.provider.api_key,
                "model": self.provider.model,
                "timeout": self.provider.timeout,
                "max_retries": self.provider.max_retries,
            }
            merged.update(data["provider"])
            self.provider = ProviderConfig.from_toml_dict(merged)

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = _normalize_log_level(str(log["level"]))
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

    def _apply_pipeline_section(self, section: Dict[str, Any]) -> None:
        for key in _INT_KEYS:
            if key in section:
                setattr(self, key, _parse_int(section[key], f"pipeline.{key}"))
        if "prioritization_timeout" in section:
            timeout = section["prioritization_timeout"]
            self.prioritization_timeout = (
                None if timeout in (None, 0) else _parse_float(timeout, "pipeline.prioritization_timeout")
            )
        if "split_strategy" in section:
            self.split_strategy = _normalize_choice(
                section["split_strategy"], VALID_SPLIT_STRATEGIES, "split_strategy"
            )
        if "join_strategy" in section:
            self.join_strategy = _normalize_choice(
                section["join_strategy"], VALID_JOIN_STRATEGIES, "join_strategy"
            )

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        for env_var, key in _INT_ENV_VARS.items():
            if value := os.environ.get(env_var):
                setattr(self, key, _parse_int(value, env_var))

        if split := os.environ.get("CHUNKFLOW_SPLIT_STRATEGY"):
            self.split_strategy = _normalize_choice(
                split, VALID_SPLIT_STRATEGIES, "CHUNKFLOW_SPLIT_STRATEGY"
            )
        if join := os.environ.get("CHUNKFLOW_JOIN_STRATEGY"):
            self.join_strategy = _normalize_choice(
                join, VALID_JOIN_STRATEGIES, "CHUNKFLOW_JOIN_STRATEGY"
            )

        # Log level
        if level := os.environ.get("CHUNKFLOW_LOG_LEVEL"):
            self.log_level = _normalize_log_level(level)
        if structured := os.environ.get("CHUNKFLOW_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

        # Provider
        if base_url := os.environ.get("CHUNKFLOW_BASE_URL"):
            self.provider.base_url = base_url
        if api_key := os.environ.get("CHUNKFLOW_API_KEY"):
            self.provider.api_key = api_key
        if model := os.environ.get("CHUNKFLOW_MODEL"):
            self.provider.model = model
