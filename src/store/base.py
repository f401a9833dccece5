"""
Collaborator protocols for the session core.

The core only ever talks to a question store (pool plus last outcomes) and a
result sink (persists finished sessions). Anything that implements these two
protocols can back a session.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.core.models import Outcome, Question, SessionMode, SessionSummary


class QuestionStore(Protocol):
    """Source of questions and learner history."""

    def fetch_pool(self, exam_id: str) -> list[Question]:
        """All questions of an exam, already validated."""
        ...

    def fetch_outcomes(self, exam_id: str, user_id: str) -> dict[str, Outcome]:
        """question_id -> most recent outcome. Missing ids are unseen."""
        ...


class ResultSink(Protocol):
    """Destination for finished sessions. Must tolerate duplicate persists."""

    async def persist(
        self,
        exam_id: str,
        mode: SessionMode,
        started_at: datetime,
        ended_at: datetime,
        summary: SessionSummary,
    ) -> bool:
        """Store the session. Returns True on success."""
        ...
