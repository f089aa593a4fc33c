"""Tests for roundtable/providers. SDK clients are replaced with mocks, no real API calls."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.config_loader import ModelConfig
from roundtable.providers import registry
from roundtable.providers.anthropic import AnthropicProvider
from roundtable.providers.base import ProviderError
from roundtable.providers.openai_provider import OpenAIProvider
from tests.conftest import MockProvider


def _model_config(name: str, sdk: str, **overrides) -> ModelConfig:
    values = dict(
        name=name,
        sdk=sdk,
        model=f"{name}-model",
        api_key_env="TEST_PROVIDER_KEY",
        timeout_sec=5,
        max_tokens=256,
    )
    values.update(overrides)
    return ModelConfig(**values)


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("TEST_PROVIDER_KEY", "sk-test")


def _openai_reply(content: str | None, total_tokens: int = 12):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message)],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def test_missing_key_raises(monkeypatch):
    monkeypatch.delenv("TEST_PROVIDER_KEY", raising=False)
    with pytest.raises(ProviderError, match="TEST_PROVIDER_KEY"):
        OpenAIProvider(_model_config("openai", "openai"))


async def test_openai_sends_system_and_temperature(api_key):
    provider = OpenAIProvider(_model_config("grok", "openai", base_url="https://api.x.ai/v1"))
    create = AsyncMock(return_value=_openai_reply("Point taken."))
    provider._client = MagicMock()
    provider._client.chat.completions.create = create

    response = await provider.generate("Argue.", system="Be brief.", temperature=0.3)

    assert response.content == "Point taken."
    assert response.provider == "grok"
    assert response.token_count == 12
    kwargs = create.await_args.kwargs
    assert kwargs["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Argue."},
    ]
    assert kwargs["temperature"] == 0.3
    assert kwargs["max_tokens"] == 256


async def test_openai_omits_unset_temperature(api_key):
    provider = OpenAIProvider(_model_config("openai", "openai"))
    create = AsyncMock(return_value=_openai_reply("ok"))
    provider._client = MagicMock()
    provider._client.chat.completions.create = create

    await provider.generate("Argue.")

    assert "temperature" not in create.await_args.kwargs
    assert len(create.await_args.kwargs["messages"]) == 1


async def test_openai_empty_content_raises(api_key):
    provider = OpenAIProvider(_model_config("openai", "openai"))
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock(return_value=_openai_reply(None))
    with pytest.raises(ProviderError, match="Empty"):
        await provider.generate("Argue.")


async def test_api_failure_wrapped(api_key):
    provider = OpenAIProvider(_model_config("openai", "openai"))
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock(side_effect=ConnectionError("reset"))
    with pytest.raises(ProviderError, match="reset") as exc_info:
        await provider.generate("Argue.")
    assert exc_info.value.provider_name == "openai"


async def test_anthropic_joins_text_blocks(api_key):
    provider = AnthropicProvider(_model_config("claude", "anthropic"))
    reply = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="First."),
            SimpleNamespace(type="tool_use", text=""),
            SimpleNamespace(type="text", text="Second."),
        ],
        usage=SimpleNamespace(input_tokens=10, output_tokens=4),
    )
    create = AsyncMock(return_value=reply)
    provider._client = MagicMock()
    provider._client.messages.create = create

    response = await provider.generate("Judge this.", system="Be fair.")

    assert response.content == "First.\nSecond."
    assert response.token_count == 14
    assert create.await_args.kwargs["system"] == "Be fair."


def test_build_providers_uses_sdk_and_skips_unknown(sample_app_config, monkeypatch):
    built = []

    def fake_provider(cfg):
        built.append(cfg.name)
        return MockProvider(cfg.name)

    monkeypatch.setitem(registry.PROVIDER_CLASSES, "anthropic", fake_provider)
    sample_app_config.models["odd"] = _model_config("odd", "carrier-pigeon")
    sample_app_config.available_providers = {"claude", "odd"}

    providers = registry.build_providers(sample_app_config)

    assert list(providers) == ["claude"]
    assert built == ["claude"]


def test_build_providers_skips_failed_instantiation(sample_app_config, monkeypatch):
    def broken(cfg):
        raise ProviderError(cfg.name, "bad key")

    monkeypatch.setitem(registry.PROVIDER_CLASSES, "anthropic", broken)
    assert registry.build_providers(sample_app_config) == {}
