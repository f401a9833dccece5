"""
Result aggregation and hand-off to the result sink.

``aggregate`` is pure and total: any list of results, including an empty
one, folds into a valid summary. ``publish`` calls the sink once and turns
any failure into a ``PersistOutcome`` so the summary stays displayable
whether or not it was saved.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime

from loguru import logger

from src.core.models import QuestionResult, SessionMode, SessionSummary
from src.store.base import ResultSink


@dataclass(frozen=True)
class PersistOutcome:
    """Whether the sink accepted a finished session."""

    success: bool
    error: str | None = None


def aggregate(results: Iterable[QuestionResult]) -> SessionSummary:
    """Fold per-question results into a session summary."""
    # Snapshot so later edits to the session's list cannot leak into the summary
    snapshot = tuple(replace(r) for r in results)
    return SessionSummary(
        correct_count=sum(1 for r in snapshot if r.is_correct),
        total_questions=len(snapshot),
        total_time_spent=sum(r.time_spent for r in snapshot),
        results=snapshot,
    )


async def publish(
    sink: ResultSink,
    exam_id: str,
    mode: SessionMode,
    started_at: datetime,
    ended_at: datetime,
    summary: SessionSummary,
) -> PersistOutcome:
    """
    Hand a summary to the result sink exactly once.

    Returns:
        PersistOutcome; never raises for sink failures
    """
    try:
        accepted = await sink.persist(exam_id, mode, started_at, ended_at, summary)
    except Exception as e:  # best-effort
        logger.error(f"Failed to persist session for exam {exam_id}: {e}")
        return PersistOutcome(success=False, error=str(e))

    if not accepted:
        logger.warning(f"Result sink rejected session for exam {exam_id}")
        return PersistOutcome(success=False, error="result sink rejected the session")

    logger.info(
        f"Session persisted: exam={exam_id} mode={mode.value} "
        f"score={summary.correct_count}/{summary.total_questions}"
    )
    return PersistOutcome(success=True)
