"""The AI contract the scheduler consumes, and its implementation over the provider layer."""

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence

from config.config_loader import PromptsConfig
from roundtable.models import (
    JudgeVerdict,
    Participant,
    ScoreFeedback,
    ScoringDimension,
    Statement,
    Topic,
    TurnContext,
)
from roundtable.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

# Host-supplied source of a human participant's formal statement.
HumanInput = Callable[[Participant, TurnContext], Awaitable[str]]

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class DebateAI(ABC):
    """Logical request/response contract with the AI backend."""

    @abstractmethod
    async def generate_thoughts(self, participant: Participant, context: TurnContext) -> str:
        ...

    @abstractmethod
    async def generate_formal_statement(
        self, participant: Participant, thoughts: str, context: TurnContext
    ) -> str:
        ...

    @abstractmethod
    async def generate_score(
        self,
        judge: Participant,
        statement: Statement,
        dimensions: Sequence[ScoringDimension],
    ) -> JudgeVerdict:
        ...


def _format_prior(statements: Sequence[Statement], names: dict[str, str]) -> str:
    if not statements:
        return "(none yet)"
    return "\n".join(
        f"[round {s.round}] {names.get(s.participant_id, s.participant_id)}: {s.content}"
        for s in statements
    )


def _format_dimensions(dimensions: Sequence[ScoringDimension]) -> str:
    lines = []
    for d in dimensions:
        line = f"- {d.name} (weight {d.weight:g}): {d.description}"
        if d.criteria:
            line += f" [{'; '.join(d.criteria)}]"
        lines.append(line)
    return "\n".join(lines)


def parse_verdict(provider_name: str, text: str, dimensions: Sequence[ScoringDimension]) -> JudgeVerdict:
    """Parse a judge's JSON reply.

    Raises:
        ProviderError: If the reply is not JSON or misses or mis-scales a
            configured dimension.
    """
    cleaned = _FENCE_RE.sub("", text.strip())
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ProviderError(provider_name, "Score reply contains no JSON object")
    try:
        raw = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as exc:
        raise ProviderError(provider_name, f"Score reply is not valid JSON: {exc}") from exc

    raw_dims = raw.get("dimensions")
    if not isinstance(raw_dims, dict):
        raise ProviderError(provider_name, "Score reply has no 'dimensions' object")

    scores: dict[str, float] = {}
    for d in dimensions:
        value = raw_dims.get(d.name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 100:
            raise ProviderError(provider_name, f"Invalid score for dimension '{d.name}': {value!r}")
        scores[d.name] = float(value)

    total = raw.get("totalScore")
    feedback_raw = raw.get("feedback")
    feedback = None
    if isinstance(feedback_raw, dict):
        feedback = ScoreFeedback(
            strengths=tuple(str(s) for s in feedback_raw.get("strengths", [])),
            weaknesses=tuple(str(s) for s in feedback_raw.get("weaknesses", [])),
            suggestions=tuple(str(s) for s in feedback_raw.get("suggestions", [])),
        )

    return JudgeVerdict(
        dimensions=scores,
        total_score=float(total) if isinstance(total, (int, float)) and not isinstance(total, bool) else None,
        comment=str(raw.get("comment", "")),
        feedback=feedback,
    )


class ProviderDebateAI(DebateAI):
    """Routes each participant to the provider named by ``participant.model``."""

    def __init__(
        self,
        providers: dict[str, AIProvider],
        prompts: PromptsConfig,
        topic: Topic | None = None,
        speaker_names: dict[str, str] | None = None,
    ) -> None:
        self._providers = providers
        self._prompts = prompts
        self._topic = topic
        self._names = speaker_names or {}

    def _provider_for(self, participant: Participant) -> AIProvider:
        if participant.model is None or participant.model not in self._providers:
            raise ProviderError(
                participant.model or "none",
                f"No provider available for participant {participant.id}",
            )
        return self._providers[participant.model]

    def _persona(self, participant: Participant) -> str:
        if participant.persona is None:
            return ""
        return self._prompts.personas.get(participant.persona, "")

    def _turn_fields(self, participant: Participant, context: TurnContext) -> dict[str, object]:
        return {
            "persona": self._persona(participant),
            "name": participant.name,
            "role": participant.role.value,
            "topic": context.topic.title,
            "description": context.topic.description,
            "round": context.round,
            "total_rounds": context.total_rounds,
            "prior_statements": _format_prior(context.prior_statements, self._names),
        }

    async def generate_thoughts(self, participant: Participant, context: TurnContext) -> str:
        provider = self._provider_for(participant)
        prompt = self._prompts.thoughts.format(**self._turn_fields(participant, context))
        response = await provider.generate(prompt)
        return response.content

    async def generate_formal_statement(
        self, participant: Participant, thoughts: str, context: TurnContext
    ) -> str:
        provider = self._provider_for(participant)
        prompt = self._prompts.statement.format(
            thoughts=thoughts or "(none)", **self._turn_fields(participant, context)
        )
        response = await provider.generate(prompt)
        return response.content

    async def generate_score(
        self,
        judge: Participant,
        statement: Statement,
        dimensions: Sequence[ScoringDimension],
    ) -> JudgeVerdict:
        provider = self._provider_for(judge)
        prompt = self._prompts.score.format(
            persona=self._persona(judge),
            judge_name=judge.name,
            topic=self._topic.title if self._topic else "",
            round=statement.round,
            speaker=self._names.get(statement.participant_id, statement.participant_id),
            statement=statement.content or "(no statement)",
            dimensions=_format_dimensions(dimensions),
        )
        response = await provider.generate(prompt, temperature=self._prompts.score_temperature)
        verdict = parse_verdict(provider.name(), response.content, dimensions)
        logger.debug("Judge %s scored %s: %s", judge.id, statement.id, verdict.dimensions)
        return verdict
