"""
Unit tests for the ExamSession state machine.

Covers the phase transitions, ignored (no-op) calls, timeout handling with
simulated time, clock hygiene between questions, and the result sink hand-off.
"""

import asyncio

import pytest

from src.core.models import SessionMode, SessionRequest
from src.session.clock import SessionClock
from src.session.engine import ExamSession, SessionPhase, SessionState


def make_request(count=10, limit=0, mode=SessionMode.COMPREHENSIVE):
    return SessionRequest(
        exam_id="networking",
        mode=mode,
        requested_count=count,
        time_limit_seconds=limit,
    )


class RecordingSink:
    """Result sink that remembers every call."""

    def __init__(self):
        self.calls = []

    async def persist(self, exam_id, mode, started_at, ended_at, summary):
        self.calls.append((exam_id, mode, started_at, ended_at, summary))
        return True


class SlowSink(RecordingSink):
    """Yields to the loop before recording, so waiters overlap."""

    async def persist(self, exam_id, mode, started_at, ended_at, summary):
        await asyncio.sleep(0)
        return await super().persist(exam_id, mode, started_at, ended_at, summary)


class FailingSink:
    async def persist(self, exam_id, mode, started_at, ended_at, summary):
        raise RuntimeError("database unavailable")


class RejectingSink:
    async def persist(self, exam_id, mode, started_at, ended_at, summary):
        return False


class SpyClock(SessionClock):
    """SessionClock that checks no two countdowns are ever live together."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.handles = []

    def start(self, limit_seconds, on_tick, on_expire):
        assert not any(h.active for h in self.handles), "previous clock still running"
        handle = super().start(limit_seconds, on_tick, on_expire)
        self.handles.append(handle)
        return handle


class TestInitialState:
    """Where a session begins."""

    def test_empty_sequence_is_empty_state(self):
        session = ExamSession(make_request(), [])

        assert session.state == SessionState(SessionPhase.EMPTY)
        assert session.state.is_terminal
        assert session.current_question is None
        assert session.summary is None

    def test_empty_ignores_transitions(self):
        session = ExamSession(make_request(), [])

        assert session.answer("A") is False
        assert session.advance() is False
        assert session.state.phase == SessionPhase.EMPTY

    def test_starts_awaiting_first_question(self, questions):
        session = ExamSession(make_request(), questions)

        assert session.state == SessionState(SessionPhase.AWAITING_ANSWER, 0)
        assert session.current_question == questions[0]
        assert not session.state.is_terminal
        assert all(not r.answered for r in session.results)


class TestAnswer:
    """Recording answers."""

    def test_correct_answer(self, questions):
        session = ExamSession(make_request(), questions)

        assert session.answer("A") is True
        result = session.current_result

        assert session.state == SessionState(SessionPhase.ANSWERED, 0)
        assert result.selected_choice_id == "A"
        assert result.is_correct is True
        assert result.time_spent == 0  # unlimited time is not tracked

    def test_wrong_answer(self, questions):
        session = ExamSession(make_request(), questions)
        session.answer("C")

        assert session.current_result.is_correct is False
        assert session.current_result.selected_choice_id == "C"

    def test_null_answer_is_incorrect(self, questions):
        session = ExamSession(make_request(), questions)
        session.answer(None)

        assert session.current_result.is_correct is False
        assert session.current_result.timed_out is True

    def test_unknown_choice_is_incorrect(self, questions):
        session = ExamSession(make_request(), questions)
        session.answer("Z")

        assert session.current_result.is_correct is False

    def test_second_answer_is_ignored(self, questions):
        session = ExamSession(make_request(), questions)
        session.answer("B")
        snapshot = (
            session.current_result.selected_choice_id,
            session.current_result.is_correct,
            session.current_result.time_spent,
        )

        assert session.answer("A") is False
        assert (
            session.current_result.selected_choice_id,
            session.current_result.is_correct,
            session.current_result.time_spent,
        ) == snapshot
        assert session.state == SessionState(SessionPhase.ANSWERED, 0)

    @pytest.mark.asyncio
    async def test_time_spent_is_limit_minus_remaining(self, questions, fake_clock, fake_time):
        session = ExamSession(make_request(limit=30), questions, clock=fake_clock)
        fake_time.advance(12.4)
        session.answer("A")

        assert session.current_result.time_spent == 12
        assert session.time_left == 18


class TestAdvance:
    """Moving between questions."""

    def test_advance_before_answer_is_ignored(self, questions):
        session = ExamSession(make_request(), questions)

        assert session.advance() is False
        assert session.state == SessionState(SessionPhase.AWAITING_ANSWER, 0)

    def test_advance_moves_to_next_question(self, questions):
        session = ExamSession(make_request(), questions)
        session.answer("A")

        assert session.advance() is True
        assert session.state == SessionState(SessionPhase.AWAITING_ANSWER, 1)
        assert session.current_question == questions[1]

    def test_double_advance_is_ignored(self, questions):
        session = ExamSession(make_request(), questions)
        session.answer("A")
        session.advance()

        assert session.advance() is False
        assert session.state == SessionState(SessionPhase.AWAITING_ANSWER, 1)

    def test_last_question_finishes(self, questions):
        session = ExamSession(make_request(), questions[:1])
        session.answer("A")
        session.advance()

        assert session.state == SessionState(SessionPhase.FINISHED)
        assert session.state.is_terminal
        assert session.current_question is None
        assert session.summary is not None
        assert session.ended_at is not None

    def test_finished_ignores_input(self, questions):
        session = ExamSession(make_request(), questions[:1])
        session.answer("B")
        session.advance()
        summary = session.summary

        assert session.answer("A") is False
        assert session.advance() is False
        assert session.summary is summary
        assert summary.correct_count == 0

    @pytest.mark.asyncio
    async def test_all_correct_within_time(self, question_factory, fake_clock, fake_time):
        """Four questions answered correctly inside the limit."""
        four = [question_factory(f"q{i}") for i in range(4)]
        session = ExamSession(make_request(limit=20), four, clock=fake_clock)

        for _ in four:
            fake_time.advance(2)
            session.answer("A")
            session.advance()

        summary = session.summary
        assert session.state.phase == SessionPhase.FINISHED
        assert summary.correct_count == 4
        assert summary.total_questions == 4
        assert summary.total_time_spent == 8
        assert [r.question.id for r in summary.results] == ["q0", "q1", "q2", "q3"]


class TestTimeout:
    """Clock expiry forces a null answer."""

    @pytest.mark.asyncio
    async def test_single_question_times_out(self, question_factory, fake_clock):
        session = ExamSession(make_request(limit=5), [question_factory("q1")], clock=fake_clock)

        await session.until_answered()

        result = session.current_result
        assert session.state == SessionState(SessionPhase.ANSWERED, 0)
        assert result.selected_choice_id is None
        assert result.is_correct is False
        assert result.time_spent == 5
        assert session.time_left == 0

    @pytest.mark.asyncio
    async def test_timeout_then_advance_finishes(self, question_factory, fake_clock):
        session = ExamSession(make_request(limit=5), [question_factory("q1")], clock=fake_clock)
        await session.until_answered()
        session.advance()

        assert session.summary.correct_count == 0
        assert session.summary.total_time_spent == 5

    @pytest.mark.asyncio
    async def test_answer_after_timeout_is_ignored(self, question_factory, fake_clock):
        session = ExamSession(make_request(limit=3), [question_factory("q1")], clock=fake_clock)
        await session.until_answered()

        assert session.answer("A") is False
        assert session.current_result.is_correct is False

    @pytest.mark.asyncio
    async def test_answer_cancels_clock(self, questions, fake_clock, fake_time):
        ticks = []
        session = ExamSession(
            make_request(limit=5), questions, clock=fake_clock, on_tick=ticks.append
        )
        session.answer("A")

        for _ in range(10):
            await fake_time.sleep(1)

        assert session.state == SessionState(SessionPhase.ANSWERED, 0)
        assert session.current_result.is_correct is True
        assert ticks == []

    @pytest.mark.asyncio
    async def test_previous_clock_does_not_touch_next_question(self, questions, fake_time):
        clock = SpyClock(tick_interval=1.0, time_source=fake_time, sleep=fake_time.sleep)
        session = ExamSession(make_request(limit=5), questions[:2], clock=clock)

        session.answer("A")
        session.advance()
        await session.until_answered()

        first, second = session.results
        assert first.is_correct is True
        assert first.time_spent == 0
        assert second.timed_out is True
        assert second.time_spent == 5
        assert len(clock.handles) == 2
        assert clock.handles[0].cancelled is True
        assert clock.handles[1].expired is True

    @pytest.mark.asyncio
    async def test_unlimited_never_times_out(self, questions, fake_clock, fake_time):
        session = ExamSession(make_request(limit=0), questions, clock=fake_clock)

        for _ in range(100):
            await fake_time.sleep(1)

        assert session.state == SessionState(SessionPhase.AWAITING_ANSWER, 0)

    @pytest.mark.asyncio
    async def test_tick_observer_sees_countdown(self, question_factory, fake_clock):
        ticks = []
        session = ExamSession(
            make_request(limit=3), [question_factory("q1")], clock=fake_clock, on_tick=ticks.append
        )
        await session.until_answered()

        assert ticks == [2, 1, 0]

    @pytest.mark.asyncio
    async def test_raising_tick_observer_still_times_out(self, question_factory, fake_clock):
        def on_tick(remaining):
            raise RuntimeError("display went away")

        session = ExamSession(
            make_request(limit=3), [question_factory("q1")], clock=fake_clock, on_tick=on_tick
        )
        await session.until_answered()

        assert session.state == SessionState(SessionPhase.ANSWERED, 0)
        assert session.current_result.timed_out
        assert session.current_result.time_spent == 3


class TestClose:
    """Tearing a session down."""

    @pytest.mark.asyncio
    async def test_close_stops_clock_and_input(self, questions, fake_clock, fake_time):
        session = ExamSession(make_request(limit=5), questions, clock=fake_clock)
        session.close()

        for _ in range(10):
            await fake_time.sleep(1)

        assert session.closed is True
        assert session.answer("A") is False
        assert session.advance() is False
        assert all(not r.answered for r in session.results)

    @pytest.mark.asyncio
    async def test_close_releases_waiters(self, questions, fake_clock):
        session = ExamSession(make_request(limit=30), questions, clock=fake_clock)
        waiter = asyncio.ensure_future(session.until_answered())
        await asyncio.sleep(0)
        session.close()

        await asyncio.wait_for(waiter, timeout=1)

    def test_close_twice_is_noop(self, questions):
        session = ExamSession(make_request(), questions)
        session.close()
        session.close()

        assert session.closed is True


class TestObserver:
    """on_change sees every transition."""

    def test_transition_sequence(self, questions):
        states = []
        session = ExamSession(make_request(), questions[:2], on_change=states.append)
        session.answer("A")
        session.advance()
        session.answer("B")
        session.advance()

        assert states == [
            SessionState(SessionPhase.AWAITING_ANSWER, 0),
            SessionState(SessionPhase.ANSWERED, 0),
            SessionState(SessionPhase.AWAITING_ANSWER, 1),
            SessionState(SessionPhase.ANSWERED, 1),
            SessionState(SessionPhase.FINISHED),
        ]

    def test_empty_notifies_once(self):
        states = []
        ExamSession(make_request(), [], on_change=states.append)

        assert states == [SessionState(SessionPhase.EMPTY)]


class TestPersistence:
    """Finished sessions go to the result sink once."""

    @pytest.mark.asyncio
    async def test_sink_called_once_with_summary(self, questions):
        sink = RecordingSink()
        session = ExamSession(make_request(mode=SessionMode.REVIEW), questions[:2], sink=sink)
        for _ in range(2):
            session.answer("A")
            session.advance()

        outcome = await session.wait_persisted()

        assert outcome.success is True
        assert session.persist_outcome is outcome
        assert len(sink.calls) == 1
        exam_id, mode, started_at, ended_at, summary = sink.calls[0]
        assert exam_id == "networking"
        assert mode == SessionMode.REVIEW
        assert started_at <= ended_at
        assert summary is session.summary

        # Asking again does not persist again
        await session.wait_persisted()
        assert len(sink.calls) == 1

    @pytest.mark.asyncio
    async def test_finish_does_not_wait_for_sink(self, questions):
        sink = RecordingSink()
        session = ExamSession(make_request(), questions[:1], sink=sink)
        session.answer("A")
        session.advance()

        # Finished synchronously; the sink has not run yet
        assert session.state.phase == SessionPhase.FINISHED
        assert session.persist_outcome is None
        assert sink.calls == []

        await session.wait_persisted()
        assert len(sink.calls) == 1

    @pytest.mark.asyncio
    async def test_sink_failure_keeps_summary(self, questions):
        session = ExamSession(make_request(), questions[:1], sink=FailingSink())
        session.answer("A")
        session.advance()

        outcome = await session.wait_persisted()

        assert outcome.success is False
        assert "database unavailable" in outcome.error
        assert session.summary.correct_count == 1
        assert session.state.phase == SessionPhase.FINISHED

    @pytest.mark.asyncio
    async def test_sink_rejection_is_failure(self, questions):
        session = ExamSession(make_request(), questions[:1], sink=RejectingSink())
        session.answer("A")
        session.advance()

        outcome = await session.wait_persisted()

        assert outcome.success is False

    @pytest.mark.asyncio
    async def test_no_sink(self, questions):
        session = ExamSession(make_request(), questions[:1])
        session.answer("A")
        session.advance()

        assert await session.wait_persisted() is None

    @pytest.mark.asyncio
    async def test_unfinished_session_is_not_persisted(self, questions):
        sink = RecordingSink()
        session = ExamSession(make_request(), questions, sink=sink)

        assert await session.wait_persisted() is None
        assert sink.calls == []

    def test_finish_without_running_loop(self, questions):
        """Sessions driven from sync code publish when the outcome is awaited."""
        sink = RecordingSink()
        session = ExamSession(make_request(), questions[:1], sink=sink)
        session.answer("A")
        session.advance()

        assert sink.calls == []
        outcome = asyncio.run(session.wait_persisted())

        assert outcome.success is True
        assert len(sink.calls) == 1

    def test_concurrent_waiters_share_one_persist(self, questions):
        """Deferred publishing still reaches the sink exactly once."""
        sink = SlowSink()
        session = ExamSession(make_request(), questions[:1], sink=sink)
        session.answer("A")
        session.advance()

        async def wait_twice():
            return await asyncio.gather(session.wait_persisted(), session.wait_persisted())

        first, second = asyncio.run(wait_twice())

        assert len(sink.calls) == 1
        assert first is second
        assert first.success is True
