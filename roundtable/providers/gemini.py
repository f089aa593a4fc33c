"""Google Gemini provider using the google-genai SDK's async surface."""

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from roundtable.models import ModelResponse
from roundtable.providers.base import AIProvider, ProviderError, require_api_key


class GeminiProvider(AIProvider):
    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = genai.Client(api_key=require_api_key(config))

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
        request = self._client.aio.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                max_output_tokens=self._config.max_tokens,
                system_instruction=system or None,
                temperature=temperature,
            ),
        )
        response, latency = await self._timed_request(request, self._config.timeout_sec)

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        usage = response.usage_metadata
        return self._response(response.text, latency, usage.total_token_count if usage else None)
