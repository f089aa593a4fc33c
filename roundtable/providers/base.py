"""Abstract base for the AI model providers that back debate participants and judges."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any

from config.config_loader import ModelConfig
from roundtable.models import ModelResponse

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call fails or returns something unusable."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def require_api_key(config: ModelConfig) -> str:
    """Read the provider's key from the environment. Raises ProviderError if unset."""
    api_key = os.environ.get(config.api_key_env, "").strip()
    if not api_key:
        raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
    return api_key


class AIProvider(ABC):
    """One configured model endpoint."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name used in the roster (e.g. 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        ...

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> ModelResponse:
        """Complete ``prompt`` once.

        Args:
            prompt: User-turn text.
            system: Optional system instruction.
            temperature: Optional sampling temperature; provider default if None.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

    async def _timed_request(self, request: Awaitable[Any], timeout_sec: float) -> tuple[Any, float]:
        """Await an SDK request under a timeout. Returns (response, latency_sec)."""
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(request, timeout=timeout_sec)
        except asyncio.TimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc
        return response, time.monotonic() - start

    def _response(self, content: str, latency: float, token_count: int | None) -> ModelResponse:
        logger.debug("%s (%s): %.2fs, %s tokens", self.name(), self.model_string(), latency, token_count)
        return ModelResponse(
            provider=self.name(),
            model=self.model_string(),
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
