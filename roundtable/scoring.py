"""Score aggregation: statistics, rankings, weight checks and the fallback scorer.

Everything here is pure. Inputs are never mutated and the same input list
always produces the same output.
"""

import hashlib
import logging
import random
from collections.abc import Iterable, Sequence

from roundtable.models import (
    DimensionStats,
    Participant,
    RankedEntry,
    ScoreFeedback,
    ScoreRecord,
    ScoreStatistics,
    ScoringDimension,
    Statement,
)

logger = logging.getLogger(__name__)

DISTRIBUTION_BUCKETS = ("0-59", "60-69", "70-79", "80-89", "90-100")

MOCK_JUDGE_ID = "mock_judge"
MOCK_WEIGHTS = {"logic": 0.3, "evidence": 0.3, "delivery": 0.2, "rebuttal": 0.2}
_MOCK_SCORE_RANGE = (75, 90)

_EXPECTED_WEIGHT_SUM = 100


class MalformedScoreWeights(UserWarning):
    """Active dimension weights do not sum to 100. Reported, never corrected."""

    def __init__(self, total: float, dimensions: Sequence[str]) -> None:
        self.total = total
        self.dimensions = tuple(dimensions)
        super().__init__(
            f"Scoring dimension weights sum to {total:g}, expected {_EXPECTED_WEIGHT_SUM} "
            f"({', '.join(self.dimensions) or 'no dimensions'})"
        )


def check_weights(dimensions: Iterable[ScoringDimension]) -> MalformedScoreWeights | None:
    """Return a warning value when weights do not sum to 100, else None."""
    dims = list(dimensions)
    total = sum(d.weight for d in dims)
    if abs(total - _EXPECTED_WEIGHT_SUM) < 1e-9:
        return None
    warning = MalformedScoreWeights(total, [d.name for d in dims])
    logger.warning("%s", warning)
    return warning


def _average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _distribution(values: Iterable[float]) -> dict[str, int]:
    buckets = {label: 0 for label in DISTRIBUTION_BUCKETS}
    for value in values:
        if value < 60:
            buckets["0-59"] += 1
        elif value < 70:
            buckets["60-69"] += 1
        elif value < 80:
            buckets["70-79"] += 1
        elif value < 90:
            buckets["80-89"] += 1
        else:
            buckets["90-100"] += 1
    return buckets


def _stats(values: Sequence[float]) -> DimensionStats:
    return DimensionStats(
        average=_average(values),
        highest=max(values),
        lowest=min(values),
        distribution=_distribution(values),
    )


def statistics(records: Sequence[ScoreRecord]) -> ScoreStatistics:
    """Per-dimension and overall average/highest/lowest/distribution.

    Empty input yields a zero-valued structure with empty distributions.
    """
    if not records:
        return ScoreStatistics()

    per_dimension: dict[str, list[float]] = {}
    for record in records:
        for name, value in record.dimensions.items():
            per_dimension.setdefault(name, []).append(value)

    return ScoreStatistics(
        dimensions={name: _stats(values) for name, values in per_dimension.items()},
        overall=_stats([r.total_score for r in records]),
    )


def rankings(records: Sequence[ScoreRecord], participants: Sequence[Participant]) -> list[RankedEntry]:
    """Rank participants by summed total score, highest first.

    Entries are built in ``participants`` order and ``sorted`` is stable, so
    equal sums keep that order. Participants without records are left out,
    as are records for ids not in ``participants``.
    """
    names = {p.id: p.name for p in participants}
    totals: dict[str, list[float]] = {}
    dims: dict[str, dict[str, list[float]]] = {}

    for record in records:
        if record.participant_id not in names:
            continue
        totals.setdefault(record.participant_id, []).append(record.total_score)
        player_dims = dims.setdefault(record.participant_id, {})
        for name, value in record.dimensions.items():
            player_dims.setdefault(name, []).append(value)

    unranked = [
        (
            pid,
            sum(totals[pid]),
            _average(totals[pid]),
            {name: _average(values) for name, values in dims[pid].items()},
            len(totals[pid]),
        )
        for pid in names
        if pid in totals
    ]
    ordered = sorted(unranked, key=lambda entry: entry[1], reverse=True)

    return [
        RankedEntry(
            participant_id=pid,
            name=names[pid],
            total_score=total,
            average_score=average,
            dimension_scores=dimension_scores,
            statement_count=count,
            rank=index + 1,
        )
        for index, (pid, total, average, dimension_scores, count) in enumerate(ordered)
    ]


def weighted_total(scores: dict[str, float], weights: dict[str, float]) -> float:
    """Weighted mean over the dimensions present in both mappings."""
    total = 0.0
    total_weight = 0.0
    for name, weight in weights.items():
        if name in scores:
            total += scores[name] * weight
            total_weight += weight
    return total / total_weight if total_weight > 0 else 0.0


def _seeded_rng(statement_id: str) -> random.Random:
    digest = hashlib.sha256(statement_id.encode("utf-8")).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


def mock_score(statement: Statement) -> ScoreRecord:
    """Synthesize a plausible score when the real judge is unavailable.

    Seeded from the statement id, so the same statement always gets the same
    score.
    """
    rng = _seeded_rng(statement.id)
    dimensions = {name: float(rng.randint(*_MOCK_SCORE_RANGE)) for name in MOCK_WEIGHTS}
    total = sum(dimensions[name] * weight for name, weight in MOCK_WEIGHTS.items())

    logger.info("Fallback score for statement %s: %.1f", statement.id, total)

    return ScoreRecord(
        id=f"score_{statement.id}_{MOCK_JUDGE_ID}",
        judge_id=MOCK_JUDGE_ID,
        participant_id=statement.participant_id,
        statement_id=statement.id,
        round=statement.round,
        dimensions=dimensions,
        total_score=total,
        comment="Score generated automatically by the fallback scorer.",
        feedback=ScoreFeedback(
            strengths=("Clear main argument", "Reasoning is easy to follow", "Fluent delivery"),
            weaknesses=("Supporting arguments could be stronger", "Rebuttal could press harder"),
            suggestions=("Add concrete examples", "Respond more directly to the other side"),
        ),
    )
