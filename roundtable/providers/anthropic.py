"""Anthropic Claude provider using the anthropic SDK's async client."""

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from roundtable.models import ModelResponse
from roundtable.providers.base import AIProvider, ProviderError, require_api_key


class AnthropicProvider(AIProvider):
    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = anthropic_sdk.AsyncAnthropic(api_key=require_api_key(config))

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> ModelResponse:
        kwargs: dict = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature

        response, latency = await self._timed_request(
            self._client.messages.create(**kwargs), self._config.timeout_sec
        )

        # Tool-use and thinking blocks carry no speech
        text = "\n".join(b.text for b in (response.content or []) if b.type == "text")
        if not text:
            raise ProviderError(self._config.name, "No text in response")

        usage = response.usage
        token_count = usage.input_tokens + usage.output_tokens if usage else None
        return self._response(text, latency, token_count)
