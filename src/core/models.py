"""
Domain models shared by the classifier, sampler, session engine and stores.

Questions and choices are plain dataclasses; the store layer is responsible
for handing back questions that satisfy the exactly-one-correct invariant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Outcome(str, Enum):
    """Most recent result of a learner on one question."""

    UNSEEN = "unseen"
    WRONG = "wrong"
    RIGHT = "right"
    UNGRADED = "ungraded"  # attempt on record without a result; comprehensive only

    @classmethod
    def from_last_result(cls, last_result: bool | None) -> "Outcome":
        """Map a stored last_result (True/False/None) onto an outcome.

        Only questions with a progress entry get here; questions without one
        are unseen.
        """
        if last_result is None:
            return cls.UNGRADED
        return cls.RIGHT if last_result else cls.WRONG


class SessionMode(str, Enum):
    """Study mode, each selecting one outcome bucket."""

    WARMUP = "warmup"  # never attempted
    REVIEW = "review"  # last attempt wrong
    REPETITION = "repetition"  # last attempt right
    COMPREHENSIVE = "comprehensive"  # everything

    @property
    def bucket(self) -> Outcome | None:
        """Outcome this mode selects, or None for no filter."""
        return _MODE_BUCKETS[self]

    def accepts(self, outcome: Outcome) -> bool:
        bucket = self.bucket
        return bucket is None or bucket == outcome


_MODE_BUCKETS: dict[SessionMode, Outcome | None] = {
    SessionMode.WARMUP: Outcome.UNSEEN,
    SessionMode.REVIEW: Outcome.WRONG,
    SessionMode.REPETITION: Outcome.RIGHT,
    SessionMode.COMPREHENSIVE: None,
}


@dataclass(frozen=True)
class Choice:
    """One answer option of a question."""

    identifier: str
    text: str
    is_correct: bool = False


@dataclass(frozen=True)
class Question:
    """A multiple choice question with exactly one correct choice."""

    id: str
    text: str
    choices: tuple[Choice, ...]
    explanation: str | None = None

    def choice(self, identifier: str | None) -> Choice | None:
        """Look up a choice by identifier."""
        if identifier is None:
            return None
        for choice in self.choices:
            if choice.identifier == identifier:
                return choice
        return None

    @property
    def correct_choice(self) -> Choice | None:
        return next((c for c in self.choices if c.is_correct), None)

    def is_correct(self, identifier: str | None) -> bool:
        choice = self.choice(identifier)
        return choice.is_correct if choice else False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "explanation": self.explanation,
            "choices": [
                {"identifier": c.identifier, "text": c.text, "is_correct": c.is_correct}
                for c in self.choices
            ],
        }


@dataclass(frozen=True)
class SessionRequest:
    """What a caller asks for when starting a session."""

    exam_id: str
    mode: SessionMode
    requested_count: int
    time_limit_seconds: int = 0  # 0 = unlimited

    def __post_init__(self):
        if self.requested_count < 1:
            raise ValueError(f"requested_count must be >= 1, got {self.requested_count}")
        if self.time_limit_seconds < 0:
            raise ValueError(f"time_limit_seconds must be >= 0, got {self.time_limit_seconds}")

    @property
    def is_timed(self) -> bool:
        return self.time_limit_seconds > 0


@dataclass
class QuestionResult:
    """
    Outcome of one question within a run.

    Created unanswered when the session is built and recorded exactly once,
    either by an explicit answer or by a timeout.
    """

    question: Question
    selected_choice_id: str | None = None
    is_correct: bool = False
    time_spent: int = 0
    answered: bool = False

    def record(self, choice_id: str | None, time_spent: int) -> bool:
        """Record the answer. Returns False if this result was already recorded."""
        if self.answered:
            return False
        self.selected_choice_id = choice_id
        self.is_correct = self.question.is_correct(choice_id)
        self.time_spent = time_spent
        self.answered = True
        return True

    @property
    def timed_out(self) -> bool:
        return self.answered and self.selected_choice_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question.to_dict(),
            "selected_choice_id": self.selected_choice_id,
            "is_correct": self.is_correct,
            "time_spent": self.time_spent,
        }


@dataclass(frozen=True)
class SessionSummary:
    """Final scored record of a finished run."""

    correct_count: int
    total_questions: int
    total_time_spent: int
    results: tuple[QuestionResult, ...] = field(default_factory=tuple)

    @property
    def accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.correct_count / self.total_questions

    def to_dict(self) -> dict[str, Any]:
        return {
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "total_time_spent": self.total_time_spent,
            "results": [r.to_dict() for r in self.results],
        }
