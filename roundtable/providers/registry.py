"""Build provider instances from config, keyed by roster model name."""

import logging

from config.config_loader import AppConfig
from roundtable.providers.anthropic import AnthropicProvider
from roundtable.providers.base import AIProvider
from roundtable.providers.gemini import GeminiProvider
from roundtable.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def build_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Instantiate every provider that has an API key. Unknown SDKs are skipped."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers
