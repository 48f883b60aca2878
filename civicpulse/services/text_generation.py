"""
Text Generation Service - the external model collaborator.

The enhancement gate calls `generate(system_prompt, user_prompt, timeout_seconds)`
exactly once per query. Implementations raise only the two errors below; the
gate turns them into an EnhancementError value.

Key Components:
- TextGenerationService: abstract interface
- GroqTextGenerationService: OpenAI-compatible chat completions client
  (openai.AsyncOpenAI pointed at the Groq endpoint)
- TextGenerationTimeoutError / TextGenerationServiceError

Usage:
    service = GroqTextGenerationService.from_settings(settings)
    text = await service.generate(system_prompt, user_prompt, timeout_seconds=10)

Dependencies:
    - openai: AsyncOpenAI client and its exception hierarchy
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from openai import APIConnectionError, APIError, APITimeoutError, AsyncOpenAI

from civicpulse.core.config import Settings

logger = logging.getLogger(__name__)


class TextGenerationError(Exception):
    """Base class for text-generation failures."""


class TextGenerationTimeoutError(TextGenerationError):
    """The call did not finish within its timeout."""


class TextGenerationServiceError(TextGenerationError):
    """The service failed or returned no usable text."""


class TextGenerationService(ABC):
    """Produces free text from a system and a user prompt."""

    model_name: str = 'unknown'

    @abstractmethod
    async def generate(self, system_prompt: str, user_prompt: str, timeout_seconds: float) -> str:
        """
        Generate text for the prompts.

        Raises:
            TextGenerationTimeoutError: The call exceeded timeout_seconds.
            TextGenerationServiceError: Any other failure, including empty output.
        """


class GroqTextGenerationService(TextGenerationService):
    """
    Chat-completions client for an OpenAI-compatible endpoint.

    Args:
        api_key: Endpoint credential.
        model: Model name.
        base_url: Endpoint base URL.
        max_tokens: Completion token limit.
        temperature: Sampling temperature.
        top_p: Nucleus sampling parameter.
        client: Pre-built AsyncOpenAI client (tests inject a mock here).
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        max_tokens: int = 800,
        temperature: float = 0.3,
        top_p: float = 0.9,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model_name = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        # max_retries=0: a single attempt per query
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> 'GroqTextGenerationService':
        return cls(
            api_key=settings.groq_api_key,
            model=settings.groq_model,
            base_url=settings.groq_base_url,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            top_p=settings.llm_top_p,
        )

    async def generate(self, system_prompt: str, user_prompt: str, timeout_seconds: float) -> str:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model_name,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    top_p=self.top_p,
                    timeout=timeout_seconds,
                ),
                timeout=timeout_seconds,
            )
        except (asyncio.TimeoutError, APITimeoutError) as e:
            raise TextGenerationTimeoutError(
                f"Text generation timed out after {timeout_seconds:g}s"
            ) from e
        except APIConnectionError as e:
            raise TextGenerationServiceError(f"Text generation connection failed: {e}") from e
        except APIError as e:
            raise TextGenerationServiceError(f"Text generation API error: {e}") from e

        if not response.choices:
            raise TextGenerationServiceError("Text generation returned no choices")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise TextGenerationServiceError("Text generation returned empty content")
        return content.strip()
