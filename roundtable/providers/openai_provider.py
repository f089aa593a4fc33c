"""OpenAI provider. Also serves OpenAI-compatible endpoints (xAI, DeepSeek) via base_url."""

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from roundtable.models import ModelResponse
from roundtable.providers.base import AIProvider, ProviderError, require_api_key


class OpenAIProvider(AIProvider):
    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        client_kwargs: dict = {"api_key": require_api_key(config)}
        if config.base_url:
            client_kwargs["base_url"] = config.base_url
        self._client = AsyncOpenAI(**client_kwargs)

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
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})

        kwargs: dict = {
            "model": self._config.model,
            "messages": messages,
            "max_tokens": self._config.max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        response, latency = await self._timed_request(
            self._client.chat.completions.create(**kwargs), self._config.timeout_sec
        )

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count = response.usage.total_tokens if response.usage else None
        return self._response(choice.message.content, latency, token_count)
