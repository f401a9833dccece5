"""
Exam Session: per-question state machine for one quiz run.

Phases:
    AWAITING_ANSWER(i) -> ANSWERED(i) -> AWAITING_ANSWER(i+1) | FINISHED
    EMPTY when there were no questions to begin with

Session Flow:
1. The session enters AWAITING_ANSWER(0) on construction and starts the
   clock for question 0 (EMPTY if the sequence is empty)
2. ``answer()`` records the result, cancels the clock, enters ANSWERED
3. ``advance()`` moves to the next question or finishes the run
4. On FINISHED the summary is built and handed to the result sink in the
   background

A clock expiry is treated exactly like ``answer(None)``. Calls that do not
fit the current phase (double submits, a click racing a timeout, advancing
twice) are ignored rather than raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from loguru import logger

from src.core.models import Question, QuestionResult, SessionRequest, SessionSummary
from src.session.aggregator import PersistOutcome, aggregate, publish
from src.session.clock import ClockHandle, SessionClock
from src.store.base import ResultSink


class SessionPhase(str, Enum):
    """Phase of a session run."""

    AWAITING_ANSWER = "awaiting_answer"
    ANSWERED = "answered"
    FINISHED = "finished"
    EMPTY = "empty"  # no content, as opposed to completed content


@dataclass(frozen=True)
class SessionState:
    """Snapshot of where a session is."""

    phase: SessionPhase
    index: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (SessionPhase.FINISHED, SessionPhase.EMPTY)


class ExamSession:
    """
    State machine driving one quiz run.

    Owns its result list and clock handle exclusively; never share an
    instance between runs.

    Args:
        request: What was asked for (exam, mode, count, time limit)
        questions: Sampled question sequence, in presentation order
        clock: Countdown factory (defaults to a real-time SessionClock)
        sink: Where the finished summary is persisted (optional)
        on_tick: Observer for remaining seconds of the current question
        on_change: Observer for every state transition
    """

    def __init__(
        self,
        request: SessionRequest,
        questions: Sequence[Question],
        clock: SessionClock | None = None,
        sink: ResultSink | None = None,
        on_tick: Callable[[int], None] | None = None,
        on_change: Callable[[SessionState], None] | None = None,
    ):
        self.id: UUID = uuid4()
        self.request = request
        self.questions: tuple[Question, ...] = tuple(questions)
        self.started_at = datetime.now()
        self.ended_at: datetime | None = None
        self.time_left = request.time_limit_seconds

        self._clock = clock or SessionClock()
        self._sink = sink
        self._on_tick = on_tick
        self._on_change = on_change

        self._results = [QuestionResult(question=q) for q in self.questions]
        self._index = 0
        self._phase = SessionPhase.EMPTY
        self._clock_handle: ClockHandle | None = None
        self._answered = asyncio.Event()
        self._summary: SessionSummary | None = None
        self._persist_task: asyncio.Task | None = None
        self._persist_outcome: PersistOutcome | None = None
        self._closed = False

        if self.questions:
            logger.info(
                f"Session {self.id} started: exam={request.exam_id} "
                f"mode={request.mode.value} questions={len(self.questions)} "
                f"limit={request.time_limit_seconds}s"
            )
            self._enter_awaiting(0)
        else:
            logger.info(f"Session {self.id} empty: no questions for mode {request.mode.value}")
            self._notify()

    # ========================================
    # Read-only surface
    # ========================================

    @property
    def state(self) -> SessionState:
        if self._phase in (SessionPhase.AWAITING_ANSWER, SessionPhase.ANSWERED):
            return SessionState(self._phase, self._index)
        return SessionState(self._phase)

    @property
    def current_question(self) -> Question | None:
        if self._phase in (SessionPhase.AWAITING_ANSWER, SessionPhase.ANSWERED):
            return self.questions[self._index]
        return None

    @property
    def current_result(self) -> QuestionResult | None:
        if self._phase in (SessionPhase.AWAITING_ANSWER, SessionPhase.ANSWERED):
            return self._results[self._index]
        return None

    @property
    def results(self) -> list[QuestionResult]:
        return list(self._results)

    @property
    def summary(self) -> SessionSummary | None:
        """Final summary; None until the session is FINISHED."""
        return self._summary

    @property
    def persist_outcome(self) -> PersistOutcome | None:
        """Sink outcome once known; None while pending or without a sink."""
        return self._persist_outcome

    @property
    def is_last_question(self) -> bool:
        return self._index == len(self.questions) - 1

    @property
    def closed(self) -> bool:
        return self._closed

    # ========================================
    # Transitions
    # ========================================

    def answer(self, choice_id: str | None) -> bool:
        """
        Record an answer for the current question.

        ``None`` means no answer (what a timeout records).

        Returns:
            True if recorded, False if ignored because the phase did not allow it
        """
        if self._closed or self._phase != SessionPhase.AWAITING_ANSWER:
            logger.debug(f"Session {self.id}: answer ignored in {self._phase.value}")
            return False

        limit = self.request.time_limit_seconds
        handle = self._clock_handle
        remaining = handle.remaining if handle is not None else 0
        time_spent = limit - remaining if limit > 0 else 0
        self._clock.cancel(handle)

        result = self._results[self._index]
        result.record(choice_id, time_spent)
        self.time_left = remaining

        self._phase = SessionPhase.ANSWERED
        self._answered.set()
        logger.debug(
            f"Session {self.id}: q{self._index} answered "
            f"choice={choice_id} correct={result.is_correct} time={time_spent}s"
        )
        self._notify()
        return True

    def advance(self) -> bool:
        """
        Move past an answered question.

        Returns:
            True if the session moved on, False if ignored
        """
        if self._closed or self._phase != SessionPhase.ANSWERED:
            logger.debug(f"Session {self.id}: advance ignored in {self._phase.value}")
            return False

        if self.is_last_question:
            self._finish()
        else:
            self._enter_awaiting(self._index + 1)
        return True

    def close(self) -> None:
        """Tear the session down: stop the clock and ignore further input."""
        if self._closed:
            return
        self._clock.cancel(self._clock_handle)
        self._closed = True
        self._answered.set()
        logger.debug(f"Session {self.id} closed in {self._phase.value}")

    # ========================================
    # Waiting
    # ========================================

    async def until_answered(self) -> None:
        """Wait until the current question is answered (by input or timeout)."""
        if self._phase != SessionPhase.AWAITING_ANSWER or self._closed:
            return
        await self._answered.wait()

    async def wait_persisted(self) -> PersistOutcome | None:
        """
        Wait for the result sink outcome of a finished session.

        Returns None when the session has no sink or is not finished.
        """
        if self._persist_outcome is not None:
            return self._persist_outcome
        if self._summary is None or self._sink is None:
            return None
        if self._persist_task is None:
            # Finished without a running loop; the first waiter starts the
            # publish and every later waiter shares it
            self._persist_task = asyncio.ensure_future(self._publish_and_store())
        await asyncio.wait({self._persist_task})
        return self._persist_outcome

    # ========================================
    # Internals
    # ========================================

    def _enter_awaiting(self, index: int) -> None:
        # The previous clock must be gone before a new one can start
        self._clock.cancel(self._clock_handle)
        self._clock_handle = None

        self._index = index
        self._phase = SessionPhase.AWAITING_ANSWER
        self.time_left = self.request.time_limit_seconds
        self._answered = asyncio.Event()
        self._clock_handle = self._clock.start(
            self.request.time_limit_seconds,
            on_tick=lambda remaining: self._handle_tick(index, remaining),
            on_expire=lambda: self._handle_expire(index),
        )
        self._notify()

    def _handle_tick(self, index: int, remaining: int) -> None:
        if self._phase != SessionPhase.AWAITING_ANSWER or self._index != index:
            return
        self.time_left = remaining
        if self._on_tick is not None:
            self._on_tick(remaining)

    def _handle_expire(self, index: int) -> None:
        if self._phase != SessionPhase.AWAITING_ANSWER or self._index != index:
            return
        logger.debug(f"Session {self.id}: q{index} timed out")
        self.answer(None)

    def _finish(self) -> None:
        self._clock.cancel(self._clock_handle)
        self._clock_handle = None

        self.ended_at = datetime.now()
        self._summary = aggregate(self._results)
        self._phase = SessionPhase.FINISHED
        logger.info(
            f"Session {self.id} finished: "
            f"{self._summary.correct_count}/{self._summary.total_questions} correct, "
            f"{self._summary.total_time_spent}s"
        )

        if self._sink is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._persist_task = loop.create_task(self._publish_and_store())

        self._notify()

    async def _publish(self) -> PersistOutcome:
        return await publish(
            self._sink,
            self.request.exam_id,
            self.request.mode,
            self.started_at,
            self.ended_at,
            self._summary,
        )

    async def _publish_and_store(self) -> None:
        self._persist_outcome = await self._publish()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.state)
