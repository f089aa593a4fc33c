"""Bounded exponential-backoff retry around a single async unit of AI work."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, TypeVar

from roundtable.models import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

OperationType = Literal["thoughts", "speech", "score"]


@dataclass(frozen=True)
class RetryContext:
    operation: OperationType
    participant_id: str


class GenerationExhausted(RuntimeError):
    """Raised once every attempt of an operation has failed."""

    def __init__(self, context: RetryContext, attempts: int, errors: list[str]) -> None:
        self.operation = context.operation
        self.participant_id = context.participant_id
        self.attempts = attempts
        self.errors = errors
        reason = errors[-1] if errors else "unknown error"
        super().__init__(
            f"AI generation failed ({self.operation}) - participant {self.participant_id}: {reason}"
        )


def backoff_delay(policy: RetryPolicy, attempt: int) -> float:
    """Delay before the retry that follows failed attempt ``attempt`` (1-indexed)."""
    return min(policy.base_delay_sec * policy.backoff_factor ** attempt, policy.max_delay_sec)


class RetryExecutor:
    """Runs an operation up to ``policy.max_attempts`` times with deterministic backoff.

    Holds no state between calls apart from ``last_attempts``, which is
    informational only.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        if self.policy.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._sleep = sleep
        self.last_attempts = 0

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: RetryContext,
        on_error: Callable[[GenerationExhausted], None] | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds or the policy is exhausted.

        Args:
            operation: Zero-argument coroutine function doing one attempt.
            context: Operation type and target participant, used in logs and
                in the aggregated error.
            on_error: Called exactly once with the aggregated failure.

        Returns:
            The first successful attempt's result.

        Raises:
            GenerationExhausted: After ``max_attempts`` failed attempts.
        """
        errors: list[str] = []
        last_exc: Exception | None = None
        attempt = 0

        while attempt < self.policy.max_attempts:
            attempt += 1
            self.last_attempts = attempt
            try:
                return await operation()
            except Exception as exc:
                last_exc = exc
                errors.append(str(exc) or type(exc).__name__)
                logger.warning(
                    "Attempt %d/%d failed (%s, participant %s): %s",
                    attempt,
                    self.policy.max_attempts,
                    context.operation,
                    context.participant_id,
                    exc,
                )

            if attempt < self.policy.max_attempts:
                delay = backoff_delay(self.policy, attempt)
                logger.debug("Retrying %s for %s in %.2fs", context.operation, context.participant_id, delay)
                await self._sleep(delay)

        failure = GenerationExhausted(context, attempt, errors)
        failure.__cause__ = last_exc
        logger.error("%s", failure)
        if on_error is not None:
            on_error(failure)
        raise failure
