"""Constants for chunked request/response processing."""

from __future__ import annotations

# Budget configuration
DEFAULT_MAX_INPUT_CHARS = 5000  # used when the model publishes no input ceiling
DEFAULT_SAFETY_MARGIN_CHARS = 500

# Concurrency (wave sizes)
DEFAULT_PROCESSING_CONCURRENCY = 2
DEFAULT_SYNTHESIS_CONCURRENCY = 4

# Prioritization
PRIORITY_PREVIEW_CHARS = 500
NEUTRAL_PRIORITY_SCORE = 5.0
MIN_PRIORITY_SCORE = 1.0
MAX_PRIORITY_SCORE = 10.0
DEFAULT_PRIORITIZATION_TIMEOUT = 60.0  # seconds

# Caller confirmation: estimated calls above this need user-approved limits
DEFAULT_CONFIRMATION_THRESHOLD = 5

# Synthesis
PARTIAL_RESULT_SEPARATOR = "\n\n---\n\n"
DEFAULT_MAX_SYNTHESIS_DEPTH = 1
