"""Story synthesis."""

from .llm_provider import (
    GenerationProvider,
    GenerationResponse,
    HTTPGenerationProvider,
    MockGenerationProvider,
    OpenAIProvider,
    build_provider,
)
from .models import GroupOutcome, GroupStatus, RoundupPayload, SynthesisStats
from .prompts import PROMPT_VERSION, build_messages
from .roundup import SynthesisEngine, parse_payload, select_citations

__all__ = [
    "GenerationProvider",
    "GenerationResponse",
    "HTTPGenerationProvider",
    "MockGenerationProvider",
    "OpenAIProvider",
    "build_provider",
    "GroupOutcome",
    "GroupStatus",
    "RoundupPayload",
    "SynthesisStats",
    "PROMPT_VERSION",
    "build_messages",
    "SynthesisEngine",
    "parse_payload",
    "select_citations",
]
