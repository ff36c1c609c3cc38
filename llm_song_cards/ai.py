"""
OpenAI client wrapper and task configuration.

The rest of the package only relies on the ``prompt(prompt_text, system=...)``
method returning an object with ``text()``, so tests can pass any object with
that shape.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import openai

from .exceptions import AIConfigurationError

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

DEFAULT_BASE_URL = "https://api.openai.com/v1"


@dataclass
class TaskConfig:
    model: str
    temperature: float
    max_tokens: int


@dataclass
class AIConfig:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    mock_mode_flag: bool = False
    max_retries: int = 0
    mock_delay: float = 0.5
    lyrics_batch_size: int = 8
    card_generation: TaskConfig = field(
        default_factory=lambda: TaskConfig(model="gpt-4o-mini", temperature=0.3, max_tokens=1500)
    )
    lyrics_parser: TaskConfig = field(
        default_factory=lambda: TaskConfig(model="gpt-4o-mini", temperature=0.2, max_tokens=8000)
    )

    @property
    def mock_mode(self) -> bool:
        return self.mock_mode_flag or not self.api_key


def load_config(environ: Optional[Dict[str, str]] = None) -> AIConfig:
    """Read the AI configuration from the environment."""
    env = os.environ if environ is None else environ
    return AIConfig(
        api_key=env.get("OPENAI_API_KEY") or None,
        base_url=env.get("OPENAI_BASE_URL") or DEFAULT_BASE_URL,
        mock_mode_flag=env.get("AI_MOCK_MODE", "false").lower() == "true",
        max_retries=int(env.get("AI_MAX_RETRIES", "0")),
        mock_delay=float(env.get("AI_MOCK_DELAY", "0.5")),
        lyrics_batch_size=int(env.get("AI_LYRICS_BATCH_SIZE", "8")),
        card_generation=TaskConfig(
            model=env.get("AI_CARD_MODEL", "gpt-4o-mini"),
            temperature=0.3,
            max_tokens=1500,
        ),
        lyrics_parser=TaskConfig(
            model=env.get("AI_LYRICS_MODEL", "gpt-4o-mini"),
            temperature=0.2,
            max_tokens=8000,
        ),
    )


class Response:
    """Plain-text model response."""

    def __init__(
        self, content: str, usage: Any = None, finish_reason: Optional[str] = None, model: Optional[str] = None
    ) -> None:
        self.content = content
        self.usage = usage
        self.finish_reason = finish_reason
        self.model = model

    def text(self) -> str:
        return self.content


class OpenAIModel:
    """Wrapper for the OpenAI chat completions API bound to one task config."""

    def __init__(self, client: Any, task: TaskConfig) -> None:
        self.client = client
        self.task = task

    @property
    def model_name(self) -> str:
        return self.task.model

    def prompt(self, prompt_text: str, system: str = "") -> Response:
        """Send prompt to OpenAI and return response."""
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt_text})

        if DEBUG_MODE:
            print(f"🤖 OpenAI API Call Details:")
            print(f"   Model: {self.task.model}")
            print(f"   System prompt length: {len(system) if system else 0} characters")
            print(f"   User prompt length: {len(prompt_text)} characters")

        try:
            response = self.client.chat.completions.create(
                model=self.task.model,
                messages=messages,  # type: ignore
                temperature=self.task.temperature,
                max_tokens=self.task.max_tokens,
            )
        except Exception as e:
            if _is_configuration_error(e):
                raise AIConfigurationError(f"AI service rejected the configuration: {e}") from e
            if DEBUG_MODE:
                print(f"❌ OpenAI API call failed: {str(e)}")
            raise

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content if choice else None) or ""

        if DEBUG_MODE:
            print(f"✅ OpenAI API Response:")
            print(f"   Response length: {len(content)} characters")
            print(f"   Usage: {response.usage}")

        return Response(
            content,
            usage=response.usage,
            finish_reason=getattr(choice, "finish_reason", None),
            model=self.task.model,
        )


def _is_configuration_error(error: Exception) -> bool:
    return isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError, openai.NotFoundError))


def create_client(config: AIConfig) -> Any:
    """Build the OpenAI client; raises when no key is configured."""
    if not config.api_key:
        raise AIConfigurationError("OPENAI_API_KEY is not set.")
    return openai.OpenAI(api_key=config.api_key, base_url=config.base_url, max_retries=config.max_retries)
