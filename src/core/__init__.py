"""
Core Module - Shared domain models and errors.

Components:
- models: Question, Choice, Outcome, SessionMode, SessionRequest,
  QuestionResult, SessionSummary
- errors: ExamDrillError hierarchy

Design Principle:
Domain modules (src/quiz/, src/session/, src/store/) import shared concepts
from src/core/ rather than redefining them.
"""

from src.core.errors import ExamDrillError, ExamFormatError, ExamNotFoundError
from src.core.models import (
    Choice,
    Outcome,
    Question,
    QuestionResult,
    SessionMode,
    SessionRequest,
    SessionSummary,
)

__all__ = [
    # Models
    "Choice",
    "Outcome",
    "Question",
    "QuestionResult",
    "SessionMode",
    "SessionRequest",
    "SessionSummary",
    # Errors
    "ExamDrillError",
    "ExamFormatError",
    "ExamNotFoundError",
]
