"""Dataclasses and vocabularies for the debate session. No logic beyond trivial helpers."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _freeze(obj: object, name: str) -> None:
    # Read-only view over a private copy
    object.__setattr__(obj, name, MappingProxyType(dict(getattr(obj, name))))


class DebateRole(str, Enum):
    AFFIRMATIVE_1 = "affirmative-1"
    AFFIRMATIVE_2 = "affirmative-2"
    NEGATIVE_1 = "negative-1"
    NEGATIVE_2 = "negative-2"
    JUDGE = "judge"
    OBSERVER = "observer"
    UNASSIGNED = "unassigned"


class ParticipantStatus(str, Enum):
    WAITING = "waiting"
    SPEAKING = "speaking"
    FINISHED = "finished"


class StatementKind(str, Enum):
    INNER_THOUGHTS = "innerThoughts"
    FORMAL_STATEMENT = "formalStatement"
    SYSTEM_NOTE = "systemNote"


class SessionStatus(str, Enum):
    PREPARING = "preparing"
    ONGOING = "ongoing"
    ROUND_COMPLETE = "roundComplete"
    SCORING = "scoring"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class Participant:
    id: str
    name: str
    is_ai_controlled: bool = True
    persona: str | None = None     # key into the personas table
    model: str | None = None       # provider name for AI participants
    role: DebateRole = DebateRole.UNASSIGNED
    status: ParticipantStatus = ParticipantStatus.WAITING


@dataclass(frozen=True)
class Statement:
    id: str
    participant_id: str
    round: int
    content: str
    kind: StatementKind
    created_at: datetime = field(default_factory=_now)
    references: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoreFeedback:
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoreRecord:
    id: str
    judge_id: str
    participant_id: str
    statement_id: str
    round: int
    dimensions: Mapping[str, float]
    total_score: float
    comment: str = ""
    feedback: ScoreFeedback | None = None
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        _freeze(self, "dimensions")


@dataclass
class ScoringDimension:
    name: str
    weight: float                  # 0-100; active weights are expected to sum to 100
    description: str = ""
    criteria: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.name,
            "name": self.name,
            "weight": self.weight,
            "description": self.description,
            "criteria": list(self.criteria),
        }


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_sec: float = 1.0
    max_delay_sec: float = 5.0
    backoff_factor: float = 1.5


@dataclass(frozen=True)
class StreamSettings:
    enabled: bool = True
    chunk_size: int = 2
    delay_sec: float = 0.05


@dataclass(frozen=True)
class StatementRules:
    """Length limits for human statements, in characters."""

    min_length: int = 10
    max_length: int = 1000


_STRUCTURED_ROLE_ORDER = (
    DebateRole.AFFIRMATIVE_1,
    DebateRole.NEGATIVE_1,
    DebateRole.AFFIRMATIVE_2,
    DebateRole.NEGATIVE_2,
)


@dataclass(frozen=True)
class StructuredFormat:
    """Speaking order fixed by role."""

    role_order: tuple[DebateRole, ...] = _STRUCTURED_ROLE_ORDER


@dataclass(frozen=True)
class FreeFormat:
    """All eligible participants share one rotation in configured order."""

    rotate_each_round: bool = False


DebateFormat = StructuredFormat | FreeFormat


@dataclass(frozen=True)
class Topic:
    title: str
    description: str = ""


@dataclass
class DebateConfig:
    topic: Topic
    total_rounds: int
    format: DebateFormat
    participants: list[Participant]
    judge: Participant
    dimensions: list[ScoringDimension] = field(default_factory=list)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    streaming: StreamSettings = field(default_factory=StreamSettings)
    statement_rules: StatementRules = field(default_factory=StatementRules)


@dataclass(frozen=True)
class TurnContext:
    topic: Topic
    round: int
    total_rounds: int
    prior_statements: tuple[Statement, ...] = ()


@dataclass(frozen=True)
class JudgeVerdict:
    dimensions: Mapping[str, float]
    total_score: float | None = None
    comment: str = ""
    feedback: ScoreFeedback | None = None

    def __post_init__(self) -> None:
        _freeze(self, "dimensions")


@dataclass
class SessionState:
    """Mutable session state. Written only by TurnScheduler."""

    total_rounds: int
    round: int = 1
    status: SessionStatus = SessionStatus.PREPARING
    turn_queue: list[str] = field(default_factory=list)
    queue_position: int = 0
    current_speaker: str | None = None
    statements: list[Statement] = field(default_factory=list)
    scores: list[ScoreRecord] = field(default_factory=list)


@dataclass(frozen=True)
class SessionSnapshot:
    status: SessionStatus
    round: int
    total_rounds: int
    turn_queue: tuple[str, ...]
    current_speaker: str | None
    next_speaker: str | None
    statements: tuple[Statement, ...]
    scores: tuple[ScoreRecord, ...]


@dataclass(frozen=True)
class SessionEvent:
    kind: str                      # "state", "chunk", "statement", "scores", "error"
    round: int
    participant_id: str | None = None
    payload: Any = None


@dataclass(frozen=True)
class DimensionStats:
    average: float = 0.0
    highest: float = 0.0
    lowest: float = 0.0
    distribution: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _freeze(self, "distribution")


@dataclass(frozen=True)
class ScoreStatistics:
    dimensions: Mapping[str, DimensionStats] = field(default_factory=dict)
    overall: DimensionStats = field(default_factory=DimensionStats)

    def __post_init__(self) -> None:
        _freeze(self, "dimensions")


@dataclass(frozen=True)
class RankedEntry:
    participant_id: str
    name: str
    total_score: float
    average_score: float
    dimension_scores: Mapping[str, float]
    statement_count: int
    rank: int

    def __post_init__(self) -> None:
        _freeze(self, "dimension_scores")


@dataclass
class ModelResponse:
    provider: str          # "claude", "openai", "gemini", ...
    model: str             # actual model string used
    content: str
    latency_sec: float
    token_count: int | None
