"""
Outcome classification for session modes.

Splits a question pool into the buckets a learner studies from: never seen,
last answered wrong, last answered right, or everything.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from src.core.models import Outcome, Question, SessionMode


def outcome_of(question: Question, outcomes: Mapping[str, Outcome]) -> Outcome:
    """Outcome for one question; questions without history are unseen."""
    return outcomes.get(question.id, Outcome.UNSEEN)


def classify(
    questions: Iterable[Question],
    outcomes: Mapping[str, Outcome],
    mode: SessionMode,
) -> list[Question]:
    """
    Filter the pool down to the questions matching ``mode``.

    Args:
        questions: Full question pool, in store order
        outcomes: question_id -> last outcome for the learner
        mode: Study mode selecting the bucket

    Returns:
        Matching questions in pool order. Empty when nothing matches.
    """
    return [q for q in questions if mode.accepts(outcome_of(q, outcomes))]


def bucket_counts(
    questions: Iterable[Question],
    outcomes: Mapping[str, Outcome],
) -> dict[SessionMode, int]:
    """Number of questions available to each mode."""
    counts = {mode: 0 for mode in SessionMode}
    for question in questions:
        outcome = outcome_of(question, outcomes)
        for mode in SessionMode:
            if mode.accepts(outcome):
                counts[mode] += 1
    return counts
