"""Seat unassigned roster members in open debate roles."""

import logging
import random
from collections.abc import Sequence
from dataclasses import replace

from roundtable.models import DebateRole, Participant

logger = logging.getLogger(__name__)

_AFFIRMATIVE_SEATS = (DebateRole.AFFIRMATIVE_1, DebateRole.AFFIRMATIVE_2)
_NEGATIVE_SEATS = (DebateRole.NEGATIVE_1, DebateRole.NEGATIVE_2)


def _open_seats(
    participants: Sequence[Participant],
    affirmative: int,
    negative: int,
    judges: int,
    observers: int,
) -> list[DebateRole]:
    held = [p.role for p in participants]
    seats = [r for r in _AFFIRMATIVE_SEATS[:affirmative] if r not in held]
    seats += [r for r in _NEGATIVE_SEATS[:negative] if r not in held]
    seats += [DebateRole.JUDGE] * max(judges - held.count(DebateRole.JUDGE), 0)
    seats += [DebateRole.OBSERVER] * max(observers - held.count(DebateRole.OBSERVER), 0)
    return seats


def assign_roles(
    participants: Sequence[Participant],
    *,
    affirmative: int = 2,
    negative: int = 2,
    judges: int = 0,
    observers: int = 0,
    rng: random.Random | None = None,
) -> list[Participant]:
    """Return copies of ``participants`` with unassigned members placed in open seats.

    Seats fill in order: affirmative, negative, judge, observer. Unassigned
    members are shuffled first, so who lands where is random unless ``rng``
    is seeded. Seats someone already holds stay with them, and members left
    over once the seats run out stay unassigned. Input order is preserved.

    Raises:
        ValueError: A team count is outside 0-2, or a count is negative.
    """
    if not 0 <= affirmative <= len(_AFFIRMATIVE_SEATS) or not 0 <= negative <= len(_NEGATIVE_SEATS):
        raise ValueError("Each team has at most two seats")
    if judges < 0 or observers < 0:
        raise ValueError("Seat counts must not be negative")

    seated = [replace(p) for p in participants]
    waiting = [p for p in seated if p.role == DebateRole.UNASSIGNED]
    (rng or random.Random()).shuffle(waiting)

    for participant, role in zip(waiting, _open_seats(seated, affirmative, negative, judges, observers)):
        participant.role = role
        logger.info("Assigned %s to %s", participant.name, role.value)
    return seated
