"""Model-call capability: message types, an HTTP client, and output parsing.

Key Components:
    - CallModel / ModelCaller: Function and object forms of a model caller
    - OpenAICompatibleClient: httpx-based caller for /chat/completions endpoints
    - strip_code_fence / parse_json_array: Helpers for JSON model output
    - parse_dynamic_parameters: Call options inferred from goal wording
"""

from .client import OpenAICompatibleClient
from .params import parse_dynamic_parameters
from .response_parsing import parse_json_array, strip_code_fence
from .types import (
    CallModel,
    ChatMessage,
    ModelCaller,
    ProcessingPromptTemplate,
    SynthesisPromptTemplate,
    build_messages,
    message_overhead,
)

__all__ = [
    "CallModel",
    "ChatMessage",
    "ModelCaller",
    "OpenAICompatibleClient",
    "ProcessingPromptTemplate",
    "SynthesisPromptTemplate",
    "build_messages",
    "message_overhead",
    "parse_dynamic_parameters",
    "parse_json_array",
    "strip_code_fence",
]
