"""Provider health checks: ping the providers a debate roster depends on before it opens."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from roundtable.models import Participant
from roundtable.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


@dataclass(frozen=True)
class ProviderHealth:
    ok: bool
    error: str = ""
    latency_sec: float | None = None


def providers_for(participants: Iterable[Participant]) -> set[str]:
    """Provider names the AI members of ``participants`` speak or judge through."""
    return {p.model for p in participants if p.is_ai_controlled and p.model}


async def _ping(provider: AIProvider, timeout_sec: float) -> ProviderHealth:
    try:
        response = await asyncio.wait_for(provider.generate(_PING_PROMPT), timeout=timeout_sec)
    except asyncio.TimeoutError:
        return ProviderHealth(ok=False, error=f"no reply within {timeout_sec:g}s")
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", provider.name(), exc)
        return ProviderHealth(ok=False, error=str(exc))
    return ProviderHealth(ok=True, latency_sec=response.latency_sec)


async def run_health_checks(
    providers: dict[str, AIProvider],
    participants: Iterable[Participant] | None = None,
    timeout_sec: float = _TIMEOUT_SEC,
) -> dict[str, ProviderHealth]:
    """Ping providers concurrently.

    When ``participants`` is given only the providers they use are pinged;
    providers nobody on the roster uses are left out of the result.
    """
    if participants is not None:
        needed = providers_for(participants)
        providers = {name: p for name, p in providers.items() if name in needed}

    names = list(providers)
    results = await asyncio.gather(*(_ping(providers[n], timeout_sec) for n in names))
    for name, health in zip(names, results):
        if health.ok:
            logger.info("Provider %s answered in %.2fs", name, health.latency_sec or 0.0)
    return dict(zip(names, results))
