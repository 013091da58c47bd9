"""Generation provider interface and implementations."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
import openai
from openai import OpenAI
from pydantic import BaseModel, Field

from ..errors import ConfigError, GenerationError

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class GenerationResponse(BaseModel):
    """Raw model output."""

    text: str = Field(..., description="Generated text")
    model: Optional[str] = Field(None, description="Model that produced the text, if reported")


class GenerationProvider(ABC):
    """Abstract base class for generation providers."""

    model: str = ""

    @abstractmethod
    def generate(self, messages: List[Message]) -> GenerationResponse:
        """
        Run one chat-style generation.

        Args:
            messages: Ordered ``{"role", "content"}`` messages

        Returns:
            Generated text and the reported model name

        Raises:
            GenerationError: On transport errors or an unusable response
        """
        pass

    @abstractmethod
    def get_usage_stats(self) -> Dict:
        """Get usage statistics."""
        pass


class HTTPGenerationProvider(GenerationProvider):
    """POST ``{"messages": [...]}`` to a generation endpoint that answers ``{"text", "model"}``."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        model: str = "",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport
        self.api_calls = 0

    def generate(self, messages: List[Message]) -> GenerationResponse:
        payload: Dict[str, Any] = {"messages": messages}
        if self.model:
            payload["model"] = self.model

        self.api_calls += 1
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    self.endpoint,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            raise GenerationError(f"generation request failed: {e}") from e

        if not response.is_success:
            raise GenerationError(f"AI HTTP {response.status_code}: {response.text[:500]}")

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError("generation endpoint returned non-JSON") from e

        if not isinstance(data, dict) or not isinstance(data.get("text"), str):
            raise GenerationError("generation response has no text")

        return GenerationResponse(text=data["text"], model=data.get("model") or self.model or None)

    def get_usage_stats(self) -> Dict:
        return {"api_calls": self.api_calls, "model": self.model or "unknown"}


class OpenAIProvider(GenerationProvider):
    """OpenAI chat completions, asked for a JSON object."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        temperature: float = 0.3,
        timeout: float = 60.0,
    ) -> None:
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model name to use
            base_url: Custom base URL (compatible servers, testing)
        """
        self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self.model = model
        self.temperature = temperature
        self.total_tokens = 0
        self.api_calls = 0

        # Token cost estimates (per 1K tokens)
        self.cost_per_1k_tokens = {
            "gpt-4o": {"input": 0.005, "output": 0.015},
            "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
        }

    def generate(self, messages: List[Message]) -> GenerationResponse:
        try:
            self.api_calls += 1
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            raise GenerationError(f"OpenAI request failed: {e}") from e

        if response.usage:
            self.total_tokens += response.usage.total_tokens

        if not response.choices or response.choices[0].message.content is None:
            raise GenerationError("OpenAI returned no content")

        return GenerationResponse(
            text=response.choices[0].message.content.strip(),
            model=response.model or self.model,
        )

    def get_usage_stats(self) -> Dict:
        """Get usage statistics."""
        estimated_cost = 0.0
        if self.model in self.cost_per_1k_tokens:
            # Rough estimate (assuming 70% input, 30% output)
            rates = self.cost_per_1k_tokens[self.model]
            estimated_cost = (
                (self.total_tokens * 0.7 / 1000) * rates["input"]
                + (self.total_tokens * 0.3 / 1000) * rates["output"]
            )

        return {
            "total_tokens": self.total_tokens,
            "api_calls": self.api_calls,
            "estimated_cost": estimated_cost,
            "model": self.model,
        }


class MockGenerationProvider(GenerationProvider):
    """Deterministic provider for tests and dry runs.

    With ``responses`` it replays them in order; otherwise it writes a short
    roundup citing the first three numbered items of the prompt.
    """

    ITEM_PATTERN = re.compile(r"^\[(\d+)\] (.+)$", re.MULTILINE)

    def __init__(self, responses: Optional[List[str]] = None, model: str = "mock") -> None:
        self.responses = list(responses or [])
        self.model = model
        self.calls: List[List[Message]] = []

    def generate(self, messages: List[Message]) -> GenerationResponse:
        self.calls.append(messages)

        if self.responses:
            return GenerationResponse(text=self.responses.pop(0), model=self.model)

        user = next((m["content"] for m in messages if m.get("role") == "user"), "")
        items = self.ITEM_PATTERN.findall(user)
        cited = [int(index) for index, _ in items[:3]]

        payload = {
            "title": "Local Roundup",
            "dek": "A short look at what local outlets reported.",
            "bullets": [title for _, title in items[:4]],
            "body_markdown": "\n\n".join(f"{title} (Sources: [{index}])" for index, title in items[:3])
            or "No details available.",
            "used_source_indexes": cited,
        }
        return GenerationResponse(text=json.dumps(payload), model=self.model)

    def get_usage_stats(self) -> Dict:
        """Get mock usage statistics."""
        return {"api_calls": len(self.calls), "estimated_cost": 0.0, "model": self.model}


def build_provider(llm_config: Dict[str, Any]) -> GenerationProvider:
    """Create the configured provider; the mock is never chosen implicitly."""
    provider = llm_config.get("provider", "http")

    if provider == "mock":
        return MockGenerationProvider(model=llm_config.get("model") or "mock")

    api_key = llm_config.get("api_key")
    if not api_key:
        raise ConfigError(
            f"No API key for the {provider} provider (set {llm_config.get('api_key_env') or 'llm.api_key'})"
        )

    if provider == "openai":
        return OpenAIProvider(
            api_key=api_key,
            model=llm_config.get("model") or "gpt-4o-mini",
            base_url=llm_config.get("base_url"),
            temperature=llm_config.get("temperature", 0.3),
            timeout=llm_config.get("timeout", 60.0),
        )

    if provider == "http":
        endpoint = llm_config.get("endpoint")
        if not endpoint:
            raise ConfigError("No endpoint for the http provider (set AI_ENDPOINT or llm.endpoint)")
        return HTTPGenerationProvider(
            endpoint=endpoint,
            api_key=api_key,
            model=llm_config.get("model") or "",
            timeout=llm_config.get("timeout", 60.0),
        )

    raise ConfigError(f"Unknown generation provider: {provider}")
