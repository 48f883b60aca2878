"""
Tests for the OpenAI-compatible text-generation client.

The AsyncOpenAI client is replaced with a MagicMock whose
chat.completions.create is an AsyncMock, so no network call is made.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError, APIError, APITimeoutError

from civicpulse.core.config import Settings
from civicpulse.services.text_generation import (
    GroqTextGenerationService,
    TextGenerationServiceError,
    TextGenerationTimeoutError,
)

pytestmark = pytest.mark.asyncio

REQUEST = httpx.Request('POST', 'https://api.groq.com/openai/v1/chat/completions')


def _completion(*contents):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=c)) for c in contents]
    )


def _service(create):
    client = MagicMock()
    client.chat.completions.create = create
    return GroqTextGenerationService(api_key='test-key', model='test-model', client=client)


class TestGenerate:

    async def test_returns_stripped_text_and_sends_prompts(self):
        create = AsyncMock(return_value=_completion('  Municipal brief.  '))
        service = _service(create)

        text = await service.generate('system prompt', 'user prompt', timeout_seconds=5)

        assert text == 'Municipal brief.'
        kwargs = create.await_args.kwargs
        assert kwargs['model'] == 'test-model'
        assert kwargs['messages'] == [
            {'role': 'system', 'content': 'system prompt'},
            {'role': 'user', 'content': 'user prompt'},
        ]
        assert kwargs['timeout'] == 5

    async def test_slow_call_raises_timeout(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)
            return _completion('too late')

        service = _service(slow)

        with pytest.raises(TextGenerationTimeoutError):
            await service.generate('s', 'u', timeout_seconds=0.01)

    async def test_api_timeout_is_translated(self):
        service = _service(AsyncMock(side_effect=APITimeoutError(request=REQUEST)))

        with pytest.raises(TextGenerationTimeoutError):
            await service.generate('s', 'u', timeout_seconds=5)

    @pytest.mark.parametrize("error", [
        APIConnectionError(request=REQUEST),
        APIError('rate limited', request=REQUEST, body=None),
    ])
    async def test_api_errors_become_service_errors(self, error):
        service = _service(AsyncMock(side_effect=error))

        with pytest.raises(TextGenerationServiceError):
            await service.generate('s', 'u', timeout_seconds=5)

    @pytest.mark.parametrize("completion", [
        _completion(),
        _completion(None),
        _completion('   '),
    ])
    async def test_empty_output_is_a_service_error(self, completion):
        service = _service(AsyncMock(return_value=completion))

        with pytest.raises(TextGenerationServiceError):
            await service.generate('s', 'u', timeout_seconds=5)


class TestFromSettings:

    async def test_uses_configured_model_and_sampling(self):
        settings = Settings(
            _env_file=None,
            groq_api_key='test-key',
            groq_model='custom-model',
            llm_max_tokens=256,
            llm_temperature=0.1,
        )

        service = GroqTextGenerationService.from_settings(settings)

        assert service.model_name == 'custom-model'
        assert service.max_tokens == 256
        assert service.temperature == 0.1
