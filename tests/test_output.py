"""Tests for roundtable/output.py."""

from dataclasses import replace
from pathlib import Path

import pytest

from roundtable import output
from roundtable.models import (
    RankedEntry,
    ScoreRecord,
    ScoreStatistics,
    SessionSnapshot,
    SessionStatus,
    Statement,
    StatementKind,
)
from roundtable.output import _slug, save_transcript
from roundtable.scoring import statistics


def test_slug_basic():
    assert _slug("Should we ban cars in city centres?") == "should-we-ban-cars-in-city-centres"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_slug_special_chars():
    result = _slug("AI vs. humans (2025)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


@pytest.fixture
def finished_snapshot() -> SessionSnapshot:
    thoughts = Statement("aff1-r1-innerThoughts-1", "aff1", 1, "Lead with data.\n\nThen attack.",
                         StatementKind.INNER_THOUGHTS)
    speech = Statement("aff1-r1-formalStatement-2", "aff1", 1, "Remote work saves two hours a day.",
                       StatementKind.FORMAL_STATEMENT, references=(thoughts.id,))
    skipped = Statement("neg1-r1-formalStatement-3", "neg1", 1, "", StatementKind.FORMAL_STATEMENT)
    score = ScoreRecord(
        id="score_aff1-r1-formalStatement-2_judge",
        judge_id="judge",
        participant_id="aff1",
        statement_id=speech.id,
        round=1,
        dimensions={"logic": 82.0, "evidence": 78.0},
        total_score=80.0,
        comment="Well argued.",
    )
    return SessionSnapshot(
        status=SessionStatus.COMPLETED,
        round=1,
        total_rounds=1,
        turn_queue=("aff1", "neg1"),
        current_speaker=None,
        next_speaker=None,
        statements=(thoughts, speech, skipped),
        scores=(score,),
    )


@pytest.fixture
def sample_rankings() -> list[RankedEntry]:
    return [
        RankedEntry("aff1", "Aff1", 80.0, 80.0, {"logic": 82.0}, 1, 1),
        RankedEntry("neg1", "Neg1", 61.0, 61.0, {"logic": 60.0}, 1, 2),
    ]


def test_save_transcript_creates_file_and_dir(tmp_path: Path, finished_snapshot, debate_config, sample_rankings):
    output_dir = tmp_path / "nested" / "output"
    saved = save_transcript(finished_snapshot, debate_config, sample_rankings, output_dir)
    assert saved.exists()
    assert saved.suffix == ".md"
    assert "remote-work-beats-office-work" in saved.name


def test_save_transcript_slug_override(tmp_path: Path, finished_snapshot, debate_config):
    saved = save_transcript(finished_snapshot, debate_config, [], tmp_path, slug_override="custom")
    assert saved.name.endswith("_custom.md")


def test_save_transcript_content(tmp_path: Path, finished_snapshot, debate_config, sample_rankings):
    saved = save_transcript(finished_snapshot, debate_config, sample_rankings, tmp_path, duration_sec=12.34)
    content = saved.read_text(encoding="utf-8")

    assert "# Debate: Remote work beats office work" in content
    assert "**Format:** structured" in content
    assert "**Rounds:** 1 of 1 (completed)" in content
    assert "**Duration:** 12.3s" in content
    assert "Knowledge workers only." in content
    assert "## Round 1" in content
    assert "### Aff1: inner thoughts" in content
    assert "> Lead with data." in content
    assert "Remote work saves two hours a day." in content
    assert "*Score: 80.0 (logic 82, evidence 78) by judge*" in content
    assert "*(skipped)*" in content
    assert "## Rankings" in content
    assert "| 1 | Aff1 | 80.0 | 80.0 | 1 |" in content


def test_save_transcript_without_rankings(tmp_path: Path, finished_snapshot, debate_config):
    config = replace(debate_config, topic=replace(debate_config.topic, description=""))
    content = save_transcript(finished_snapshot, config, [], tmp_path).read_text(encoding="utf-8")
    assert "## Rankings" not in content
    assert "**Duration:**" not in content


def test_console_renderers_do_not_fail(finished_snapshot, sample_rankings, capsys):
    output.print_statement(finished_snapshot.statements[1], "Ada")
    output.print_statement(finished_snapshot.statements[2], "Ben")
    output.print_round_scores(1, finished_snapshot.scores, {"aff1": "Ada"})
    output.print_round_scores(2, [], {})
    output.print_rankings(sample_rankings)
    output.print_statistics(statistics(finished_snapshot.scores))
    output.print_statistics(ScoreStatistics())

    printed = capsys.readouterr().out
    assert "Ada" in printed
    assert "Final Rankings" in printed
