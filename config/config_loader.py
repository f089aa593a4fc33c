"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from roundtable.models import (
    DebateFormat,
    DebateRole,
    FreeFormat,
    Participant,
    RetryPolicy,
    ScoringDimension,
    StatementRules,
    StreamSettings,
    StructuredFormat,
)

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    thoughts: str
    statement: str
    score: str
    score_temperature: float | None = None
    personas: dict[str, str] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    rounds: int
    max_rounds: int
    format: DebateFormat
    output_dir: Path
    judge: str                     # roster id of the judge


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    streaming: StreamSettings = field(default_factory=StreamSettings)
    statement_rules: StatementRules = field(default_factory=StatementRules)
    dimensions: list[ScoringDimension] = field(default_factory=list)
    roster: list[Participant] = field(default_factory=list)
    available_providers: set[str] = field(default_factory=set)


def parse_format(name: str, rotate_each_round: bool = False) -> DebateFormat:
    """Map a format name from config or the CLI onto its variant."""
    if name == "structured":
        return StructuredFormat()
    if name == "free":
        return FreeFormat(rotate_each_round=rotate_each_round)
    raise ValueError(f"Unknown debate format: {name!r} (expected 'structured' or 'free')")


def _parse_role(value: str) -> DebateRole:
    try:
        return DebateRole(value)
    except ValueError:
        valid = ", ".join(r.value for r in DebateRole)
        raise ValueError(f"Unknown debate role: {value!r} (expected one of {valid})") from None


def _parse_participant(raw: dict) -> Participant:
    is_ai = bool(raw.get("ai", True))
    return Participant(
        id=str(raw["id"]),
        name=str(raw.get("name", raw["id"])),
        is_ai_controlled=is_ai,
        persona=raw.get("persona"),
        model=raw.get("model") if is_ai else None,
        role=_parse_role(str(raw.get("role", DebateRole.UNASSIGNED.value))),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing and ValueError for an
    unknown format or role. Logs missing API keys but does not raise; callers
    check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        rounds=int(defaults_raw["rounds"]),
        max_rounds=int(defaults_raw["max_rounds"]),
        format=parse_format(
            str(defaults_raw.get("format", "structured")),
            bool(defaults_raw.get("rotate_each_round", False)),
        ),
        output_dir=Path(defaults_raw["output_dir"]),
        judge=str(defaults_raw["judge"]),
    )

    prompts_raw = raw["prompts"]
    personas_raw = raw.get("personas", {})
    score_temperature = prompts_raw.get("score_temperature")
    prompts = PromptsConfig(
        thoughts=prompts_raw["thoughts"],
        statement=prompts_raw["statement"],
        score=prompts_raw["score"],
        score_temperature=float(score_temperature) if score_temperature is not None else None,
        personas={k: str(v) for k, v in personas_raw.items()},
    )

    retry_raw = raw.get("retry", {})
    retry = RetryPolicy(
        max_attempts=int(retry_raw.get("max_attempts", 3)),
        base_delay_sec=float(retry_raw.get("base_delay_sec", 1.0)),
        max_delay_sec=float(retry_raw.get("max_delay_sec", 5.0)),
        backoff_factor=float(retry_raw.get("backoff_factor", 1.5)),
    )

    streaming_raw = raw.get("streaming", {})
    streaming = StreamSettings(
        enabled=bool(streaming_raw.get("enabled", True)),
        chunk_size=int(streaming_raw.get("chunk_size", 2)),
        delay_sec=float(streaming_raw.get("delay_sec", 0.05)),
    )

    statements_raw = raw.get("statements", {})
    statement_rules = StatementRules(
        min_length=int(statements_raw.get("min_length", 10)),
        max_length=int(statements_raw.get("max_length", 1000)),
    )

    dimensions = [
        ScoringDimension(
            name=str(d["name"]),
            weight=float(d["weight"]),
            description=str(d.get("description", "")),
            criteria=[str(c) for c in d.get("criteria", [])],
        )
        for d in raw.get("dimensions", [])
    ]

    roster = [_parse_participant(p) for p in raw.get("roster", [])]

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        retry=retry,
        streaming=streaming,
        statement_rules=statement_rules,
        dimensions=dimensions,
        roster=roster,
        available_providers=available_providers,
    )
