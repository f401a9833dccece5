"""
Session request surface.

Glues the question store, the classifier/sampler and the session engine
together: callers ask for (exam, mode, count, time limit) and get back a
running ExamSession.
"""

from __future__ import annotations

import random
from collections.abc import Callable

from loguru import logger

from config import get_settings
from src.core.models import SessionMode, SessionRequest
from src.quiz.classifier import bucket_counts, classify
from src.quiz.sampler import sample
from src.session.clock import SessionClock
from src.session.engine import ExamSession, SessionState
from src.store.base import QuestionStore, ResultSink


class SessionService:
    """
    Creates exam sessions for one learner.

    Args:
        store: Question pool and outcome source
        user_id: Learner whose history drives bucketing
        sink: Result sink handed to every session (optional)
        clock: Countdown factory; defaults to the configured tick interval
        rng: Random source for sampling (seed it in tests)
    """

    def __init__(
        self,
        store: QuestionStore,
        user_id: str,
        sink: ResultSink | None = None,
        clock: SessionClock | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.user_id = user_id
        self.sink = sink
        self.settings = get_settings()
        self.clock = clock or SessionClock(
            tick_interval=self.settings.clock_tick_interval_seconds
        )
        self.rng = rng or random.Random()

    def create_session(
        self,
        exam_id: str,
        mode: SessionMode | str,
        requested_count: int | None = None,
        time_limit_seconds: int | None = None,
        on_tick: Callable[[int], None] | None = None,
        on_change: Callable[[SessionState], None] | None = None,
    ) -> ExamSession:
        """
        Build and start a session.

        Args:
            exam_id: Exam to draw questions from
            mode: Bucket to study (warmup/review/repetition/comprehensive)
            requested_count: Max questions (defaults to settings)
            time_limit_seconds: Per-question limit, 0 = unlimited (defaults to settings)

        Returns:
            ExamSession in AWAITING_ANSWER(0), or EMPTY if the bucket is empty

        Raises:
            ValueError: count < 1, negative limit, or limit above the configured max
            ExamNotFoundError: store does not know the exam
        """
        if requested_count is None:
            requested_count = self.settings.default_question_count
        if time_limit_seconds is None:
            time_limit_seconds = self.settings.default_time_limit_seconds
        if time_limit_seconds > self.settings.max_time_limit_seconds:
            raise ValueError(
                f"time_limit_seconds must be <= {self.settings.max_time_limit_seconds}, "
                f"got {time_limit_seconds}"
            )

        request = SessionRequest(
            exam_id=exam_id,
            mode=SessionMode(mode),
            requested_count=requested_count,
            time_limit_seconds=time_limit_seconds,
        )

        pool = self.store.fetch_pool(exam_id)
        outcomes = self.store.fetch_outcomes(exam_id, self.user_id)
        bucket = classify(pool, outcomes, request.mode)
        questions = sample(bucket, request.requested_count, rng=self.rng)
        logger.debug(
            f"Exam {exam_id}: pool={len(pool)} bucket[{request.mode.value}]={len(bucket)} "
            f"sampled={len(questions)}"
        )

        return ExamSession(
            request,
            questions,
            clock=self.clock,
            sink=self.sink,
            on_tick=on_tick,
            on_change=on_change,
        )

    def mode_stats(self, exam_id: str) -> dict[SessionMode, int]:
        """Questions currently available to each mode for this learner."""
        pool = self.store.fetch_pool(exam_id)
        outcomes = self.store.fetch_outcomes(exam_id, self.user_id)
        return bucket_counts(pool, outcomes)
