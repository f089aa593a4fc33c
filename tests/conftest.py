"""Shared pytest fixtures and test doubles."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from roundtable.debate_ai import DebateAI
from roundtable.models import (
    DebateConfig,
    DebateRole,
    JudgeVerdict,
    ModelResponse,
    Participant,
    RetryPolicy,
    ScoringDimension,
    StreamSettings,
    StructuredFormat,
    Topic,
)
from roundtable.providers.base import AIProvider


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        thoughts="{persona}|{name}|{role}|{topic}|round {round}/{total_rounds}|{prior_statements}",
        statement="{persona}|{name}|{topic}|notes: {thoughts}|{prior_statements}",
        score="{judge_name} judges {speaker} on {topic}, round {round}: {statement}\n{dimensions}",
        score_temperature=0.3,
        personas={"analyst": "You argue from data.", "judge": "You are impartial."},
    )


@pytest.fixture
def sample_dimensions() -> list[ScoringDimension]:
    return [
        ScoringDimension("logic", 30, "Rigor of reasoning", ["clear argument"]),
        ScoringDimension("evidence", 30, "Quality of evidence"),
        ScoringDimension("delivery", 20, "Clarity of expression"),
        ScoringDimension("rebuttal", 20, "Engagement with the other side"),
    ]


def make_participant(
    pid: str,
    role: DebateRole = DebateRole.UNASSIGNED,
    *,
    ai: bool = True,
    model: str | None = "mock",
) -> Participant:
    return Participant(
        id=pid,
        name=pid.title(),
        is_ai_controlled=ai,
        model=model if ai else None,
        role=role,
    )


@pytest.fixture
def speakers() -> list[Participant]:
    """Four speakers in configured order aff1, aff2, neg1, neg2."""
    return [
        make_participant("aff1", DebateRole.AFFIRMATIVE_1),
        make_participant("aff2", DebateRole.AFFIRMATIVE_2),
        make_participant("neg1", DebateRole.NEGATIVE_1),
        make_participant("neg2", DebateRole.NEGATIVE_2),
    ]


@pytest.fixture
def judge() -> Participant:
    return make_participant("judge", DebateRole.JUDGE)


@pytest.fixture
def debate_config(speakers, judge, sample_dimensions) -> DebateConfig:
    """Two-round structured debate with zero backoff and zero reveal delay."""
    return DebateConfig(
        topic=Topic("Remote work beats office work", "Knowledge workers only."),
        total_rounds=2,
        format=StructuredFormat(),
        participants=speakers,
        judge=judge,
        dimensions=sample_dimensions,
        retry_policy=RetryPolicy(max_attempts=3, base_delay_sec=0.0, max_delay_sec=0.0),
        streaming=StreamSettings(enabled=True, chunk_size=4, delay_sec=0.0),
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        rounds=2,
        max_rounds=5,
        format=StructuredFormat(),
        output_dir=tmp_path / "output",
        judge="judge",
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
    sample_dimensions: list[ScoringDimension],
    speakers: list[Participant],
    judge: Participant,
) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": model_cfg},
        prompts=sample_prompts_config,
        dimensions=sample_dimensions,
        roster=[*speakers, judge],
        available_providers={"claude"},
    )


def _response(provider_name: str, content: str) -> ModelResponse:
    return ModelResponse(
        provider=provider_name,
        model="mock-model",
        content=content,
        latency_sec=0.1,
        token_count=10,
    )


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(return_value=_response(provider_name, response_content))  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, prompt, *, system=None, temperature=None) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return _response(self._name, self._response_content)


class FakeDebateAI(DebateAI):
    """DebateAI double. Each method is an AsyncMock so tests can swap in side effects."""

    def __init__(self) -> None:
        self.generate_thoughts = AsyncMock(  # type: ignore[assignment]
            side_effect=lambda participant, context: f"{participant.name} plans round {context.round}"
        )
        self.generate_formal_statement = AsyncMock(  # type: ignore[assignment]
            side_effect=lambda participant, thoughts, context: f"{participant.name} argues round {context.round}"
        )
        self.generate_score = AsyncMock(side_effect=self.verdict)  # type: ignore[assignment]

    @staticmethod
    def verdict(judge, statement, dimensions) -> JudgeVerdict:
        return JudgeVerdict(dimensions={d.name: 80.0 for d in dimensions}, comment="Solid.")

    async def generate_thoughts(self, participant, context):  # type: ignore[override]
        return ""

    async def generate_formal_statement(self, participant, thoughts, context):  # type: ignore[override]
        return ""

    async def generate_score(self, judge, statement, dimensions):  # type: ignore[override]
        return self.verdict(judge, statement, dimensions)


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def fake_ai() -> FakeDebateAI:
    return FakeDebateAI()
