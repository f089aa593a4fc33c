"""Turn/round orchestration: the debate session state machine.

    preparing -> ongoing -> roundComplete -> scoring -> (ongoing | completed)
                   ongoing <-> paused

TurnScheduler is the only writer of SessionState. Outside readers get frozen
snapshots, either by calling ``snapshot()`` or by subscribing to events.
"""

import itertools
import logging
from collections.abc import Callable, Sequence
from dataclasses import replace

from roundtable import scoring
from roundtable.debate_ai import DebateAI, HumanInput
from roundtable.models import (
    DebateConfig,
    DebateFormat,
    DebateRole,
    FreeFormat,
    Participant,
    ParticipantStatus,
    RankedEntry,
    ScoreRecord,
    ScoreStatistics,
    SessionEvent,
    SessionSnapshot,
    SessionState,
    SessionStatus,
    Statement,
    StatementKind,
    StructuredFormat,
    TurnContext,
)
from roundtable.retry import GenerationExhausted, RetryContext, RetryExecutor
from roundtable.streaming import StreamingRevealer
from roundtable.validation import InvalidStatement, validate_statement

logger = logging.getLogger(__name__)

_NON_SPEAKING_ROLES = frozenset({DebateRole.JUDGE, DebateRole.OBSERVER})

# Which states accept which action. Anything else is an InvalidTransition.
ALLOWED_ACTIONS: dict[str, frozenset[SessionStatus]] = {
    "start": frozenset({SessionStatus.PREPARING}),
    "run_turn": frozenset({SessionStatus.ONGOING}),
    "skip_current_speaker": frozenset({SessionStatus.ONGOING}),
    "score_round": frozenset({SessionStatus.ROUND_COMPLETE}),
    "pause": frozenset({SessionStatus.ONGOING}),
    "resume": frozenset({SessionStatus.PAUSED}),
}

Listener = Callable[[SessionEvent], None]


class InvalidTransition(RuntimeError):
    """An action was requested in a state that does not allow it."""

    def __init__(self, action: str, status: SessionStatus, reason: str | None = None) -> None:
        self.action = action
        self.status = status
        detail = reason or f"not allowed while session is '{status.value}'"
        super().__init__(f"Cannot {action}: {detail}")


def build_turn_queue(
    participants: Sequence[Participant],
    debate_format: DebateFormat,
    round_number: int,
) -> list[str]:
    """Speaking order for one round, as participant ids."""
    if isinstance(debate_format, StructuredFormat):
        by_role: dict[DebateRole, list[str]] = {}
        for p in participants:
            by_role.setdefault(p.role, []).append(p.id)
        return [pid for role in debate_format.role_order for pid in by_role.get(role, [])]

    if isinstance(debate_format, FreeFormat):
        eligible = [p.id for p in participants if p.role not in _NON_SPEAKING_ROLES]
        if debate_format.rotate_each_round and eligible:
            shift = (round_number - 1) % len(eligible)
            eligible = eligible[shift:] + eligible[:shift]
        return eligible

    raise TypeError(f"Unknown debate format: {debate_format!r}")


class TurnScheduler:
    """Owns round and turn progression for one debate session.

    Args:
        config: Topic, rounds, format, participants, judge and scoring setup.
        ai: Backend for thoughts, statements and scores.
        human_input: Source of formal statements for human participants.
            Required when any speaking participant is not AI-controlled.
        retry: Executor wrapping every AI call. Defaults to one built from
            ``config.retry_policy``.
        revealer: Streams inner thoughts. Defaults to one built from
            ``config.streaming``.
    """

    def __init__(
        self,
        config: DebateConfig,
        ai: DebateAI,
        *,
        human_input: HumanInput | None = None,
        retry: RetryExecutor | None = None,
        revealer: StreamingRevealer | None = None,
    ) -> None:
        if config.total_rounds < 1:
            raise ValueError(f"total_rounds must be >= 1, got {config.total_rounds}")

        self._config = config
        self._ai = ai
        self._human_input = human_input
        self._retry = retry or RetryExecutor(config.retry_policy)
        self._revealer = revealer or StreamingRevealer(config.streaming.chunk_size, config.streaming.delay_sec)

        self._participants = [replace(p) for p in config.participants]
        self._by_id = {p.id: p for p in self._participants}
        if len(self._by_id) != len(self._participants):
            raise ValueError("Participant ids must be unique")

        humans = [
            p.id for p in self._participants
            if not p.is_ai_controlled and p.role not in _NON_SPEAKING_ROLES
        ]
        if humans and human_input is None:
            raise ValueError(f"human_input is required for human participants: {', '.join(humans)}")

        self._state = SessionState(total_rounds=config.total_rounds)
        self._listeners: list[Listener] = []
        self._busy = False
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Read-only queries

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def weight_warning(self) -> scoring.MalformedScoreWeights | None:
        return scoring.check_weights(self._config.dimensions)

    def snapshot(self) -> SessionSnapshot:
        st = self._state
        next_speaker = None
        in_round = st.status in (SessionStatus.ONGOING, SessionStatus.PAUSED)
        if in_round and st.queue_position + 1 < len(st.turn_queue):
            next_speaker = st.turn_queue[st.queue_position + 1]
        return SessionSnapshot(
            status=st.status,
            round=st.round,
            total_rounds=st.total_rounds,
            turn_queue=tuple(st.turn_queue),
            current_speaker=st.current_speaker,
            next_speaker=next_speaker,
            statements=tuple(st.statements),
            scores=tuple(st.scores),
        )

    def participants(self) -> tuple[Participant, ...]:
        return tuple(replace(p) for p in self._participants)

    def statistics(self, round_number: int | None = None) -> ScoreStatistics:
        records = [s for s in self._state.scores if round_number is None or s.round == round_number]
        return scoring.statistics(records)

    def rankings(self) -> list[RankedEntry]:
        return scoring.rankings(self._state.scores, self._participants)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for session events. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Actions

    def start(self) -> None:
        """Leave preparing and open round 1."""
        self._require("start")
        queue = build_turn_queue(self._participants, self._config.format, 1)
        if not queue:
            raise ValueError("No eligible speakers for this debate format")

        self._open_round(queue)
        logger.info(
            "Debate started: %s (%d rounds, %d speakers)",
            self._config.topic.title,
            self._state.total_rounds,
            len(queue),
        )
        self._emit_state()

    async def run_turn(self) -> Statement:
        """Run the current speaker's turn and advance.

        Raises:
            InvalidTransition: Outside ongoing, or while another action runs.
            GenerationExhausted: Thoughts or statement could not be produced.
                The session stays ongoing with the same speaker up next.
        """
        self._require("run_turn")
        participant = self._by_id[self._state.current_speaker]  # type: ignore[index]
        context = self._turn_context()

        self._busy = True
        try:
            participant.status = ParticipantStatus.SPEAKING
            logger.info("Round %d: %s (%s) speaking", self._state.round, participant.name, participant.role.value)
            self._emit_state()
            thoughts, content = await self._generate_turn(participant, context)
        except BaseException:
            # Exhausted or cancelled: the same speaker stays up next
            self._revealer.stop()
            participant.status = ParticipantStatus.WAITING
            self._emit_state()
            raise
        finally:
            self._busy = False

        return self._complete_turn(participant, content, thoughts, context)

    async def run_round(self) -> list[Statement]:
        """Run turns until the current round is complete."""
        statements: list[Statement] = []
        while self._state.status == SessionStatus.ONGOING:
            statements.append(await self.run_turn())
        return statements

    def skip_current_speaker(self) -> Statement:
        """Close the current speaker's turn with an empty statement."""
        self._require("skip_current_speaker")
        participant = self._by_id[self._state.current_speaker]  # type: ignore[index]
        logger.info("Round %d: skipping %s", self._state.round, participant.name)
        return self._complete_turn(participant, "", "", self._turn_context())

    async def score_round(self) -> list[ScoreRecord]:
        """Score every formal statement of the finished round, then open the next round or finish.

        Judge failures never abort the round: an exhausted judge call is
        replaced by the fallback scorer.
        """
        self._require("score_round")
        st = self._state
        to_score = [
            s for s in st.statements
            if s.round == st.round and s.kind == StatementKind.FORMAL_STATEMENT
        ]

        self._busy = True
        try:
            st.status = SessionStatus.SCORING
            logger.info("Scoring round %d: %d statements", st.round, len(to_score))
            self._emit_state()
            records = [await self._score_statement(statement) for statement in to_score]
        except BaseException:
            st.status = SessionStatus.ROUND_COMPLETE
            raise
        finally:
            self._busy = False

        st.scores.extend(records)
        scores_event = self._event("scores", payload=tuple(records))

        if st.round < st.total_rounds:
            st.round += 1
            st.current_speaker = None
            self._open_round(build_turn_queue(self._participants, self._config.format, st.round))
            logger.info("Round %d opened", st.round)
        else:
            st.status = SessionStatus.COMPLETED
            logger.info("Debate completed after %d rounds", st.total_rounds)
        self._dispatch(scores_event, self._state_event())
        return records

    def pause(self) -> None:
        """Hold the round between turns. Only ``resume`` is accepted until then."""
        self._require("pause")
        self._state.status = SessionStatus.PAUSED
        logger.info("Round %d paused before %s", self._state.round, self._state.current_speaker)
        self._emit_state()

    def resume(self) -> None:
        """Continue a paused round with the same speaker up next."""
        self._require("resume")
        self._state.status = SessionStatus.ONGOING
        logger.info("Round %d resumed", self._state.round)
        self._emit_state()

    async def run(self) -> SessionSnapshot:
        """Drive the session until it completes or is paused."""
        if self._state.status == SessionStatus.PREPARING:
            self.start()
        while self._state.status not in (SessionStatus.COMPLETED, SessionStatus.PAUSED):
            if self._state.status == SessionStatus.ONGOING:
                await self.run_round()
            else:
                await self.score_round()
        return self.snapshot()

    def close(self) -> None:
        """Stop any active reveal. Safe to call repeatedly."""
        self._revealer.stop()

    async def __aenter__(self) -> "TurnScheduler":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals

    def _require(self, action: str) -> None:
        if self._busy:
            raise InvalidTransition(action, self._state.status, "another action is in progress")
        if self._state.status not in ALLOWED_ACTIONS[action]:
            raise InvalidTransition(action, self._state.status)

    def _open_round(self, queue: list[str]) -> None:
        st = self._state
        st.turn_queue = queue
        st.queue_position = 0
        st.current_speaker = queue[0] if queue else None
        st.status = SessionStatus.ONGOING if queue else SessionStatus.ROUND_COMPLETE
        for p in self._participants:
            p.status = ParticipantStatus.WAITING

    def _turn_context(self) -> TurnContext:
        return TurnContext(
            topic=self._config.topic,
            round=self._state.round,
            total_rounds=self._state.total_rounds,
            prior_statements=tuple(
                s for s in self._state.statements if s.kind == StatementKind.FORMAL_STATEMENT
            ),
        )

    async def _generate_turn(self, participant: Participant, context: TurnContext) -> tuple[str, str]:
        if not participant.is_ai_controlled:
            content = await self._retry.execute(
                lambda: self._human_statement(participant, context),
                RetryContext("speech", participant.id),
                on_error=self._report_error,
            )
            return "", content

        thoughts = await self._retry.execute(
            lambda: self._ai.generate_thoughts(participant, context),
            RetryContext("thoughts", participant.id),
            on_error=self._report_error,
        )
        if thoughts and self._config.streaming.enabled:
            await self._reveal(participant, thoughts)

        content = await self._retry.execute(
            lambda: self._ai.generate_formal_statement(participant, thoughts, context),
            RetryContext("speech", participant.id),
            on_error=self._report_error,
        )
        return thoughts, content

    async def _human_statement(self, participant: Participant, context: TurnContext) -> str:
        # A rejected statement counts as a failed attempt, so the human is asked again
        content = await self._human_input(participant, context)  # type: ignore[misc]
        errors = validate_statement(
            content,
            self._config.statement_rules,
            references=(s.id for s in context.prior_statements),
            known_ids={s.id for s in self._state.statements},
        )
        if errors:
            raise InvalidStatement(errors)
        return content

    async def _reveal(self, participant: Participant, thoughts: str) -> None:
        self._revealer.start(
            thoughts,
            chunk_size=self._config.streaming.chunk_size,
            delay_sec=self._config.streaming.delay_sec,
            on_chunk=lambda chunk: self._emit("chunk", participant.id, chunk),
        )
        await self._revealer.wait()

    def _complete_turn(
        self,
        participant: Participant,
        content: str,
        thoughts: str,
        context: TurnContext,
    ) -> Statement:
        st = self._state
        references = tuple(s.id for s in context.prior_statements)
        appended: list[Statement] = []

        if thoughts:
            appended.append(self._new_statement(participant, thoughts, StatementKind.INNER_THOUGHTS, references))
            references = (appended[0].id,)
        statement = self._new_statement(participant, content, StatementKind.FORMAL_STATEMENT, references)
        appended.append(statement)

        # History and queue move together; listeners only hear about it afterwards
        st.statements.extend(appended)
        participant.status = ParticipantStatus.FINISHED
        st.queue_position += 1
        if st.queue_position >= len(st.turn_queue):
            st.current_speaker = None
            st.status = SessionStatus.ROUND_COMPLETE
            logger.info("Round %d complete", st.round)
        else:
            st.current_speaker = st.turn_queue[st.queue_position]

        self._dispatch(
            *(self._event("statement", participant.id, s) for s in appended),
            self._state_event(),
        )
        return statement

    def _new_statement(
        self,
        participant: Participant,
        content: str,
        kind: StatementKind,
        references: tuple[str, ...],
    ) -> Statement:
        return Statement(
            id=f"{participant.id}-r{self._state.round}-{kind.value}-{next(self._ids)}",
            participant_id=participant.id,
            round=self._state.round,
            content=content,
            kind=kind,
            references=references,
        )

    async def _score_statement(self, statement: Statement) -> ScoreRecord:
        judge = self._config.judge
        dimensions = self._config.dimensions
        try:
            verdict = await self._retry.execute(
                lambda: self._ai.generate_score(judge, statement, dimensions),
                RetryContext("score", statement.participant_id),
            )
        except GenerationExhausted as exc:
            logger.warning("Judge unavailable for %s, using fallback score: %s", statement.id, exc)
            return scoring.mock_score(statement)

        total = verdict.total_score
        if total is None:
            total = scoring.weighted_total(verdict.dimensions, {d.name: d.weight for d in dimensions})

        return ScoreRecord(
            id=f"score_{statement.id}_{judge.id}",
            judge_id=judge.id,
            participant_id=statement.participant_id,
            statement_id=statement.id,
            round=statement.round,
            dimensions=dict(verdict.dimensions),
            total_score=total,
            comment=verdict.comment,
            feedback=verdict.feedback,
        )

    def _report_error(self, error: GenerationExhausted) -> None:
        self._emit("error", error.participant_id, error)

    def _state_event(self) -> SessionEvent:
        return self._event("state", self._state.current_speaker, self.snapshot())

    def _event(self, kind: str, participant_id: str | None = None, payload: object = None) -> SessionEvent:
        return SessionEvent(kind=kind, round=self._state.round, participant_id=participant_id, payload=payload)

    def _emit_state(self) -> None:
        self._dispatch(self._state_event())

    def _emit(self, kind: str, participant_id: str | None = None, payload: object = None) -> None:
        self._dispatch(self._event(kind, participant_id, payload))

    def _dispatch(self, *events: SessionEvent) -> None:
        for event in events:
            for listener in list(self._listeners):
                listener(event)
