"""
Session module: timed quiz runs.

Components:
- clock: SessionClock / ClockHandle cooperative countdown
- engine: ExamSession per-question state machine
- aggregator: aggregate() summary fold and publish() sink hand-off
- service: SessionService request surface (create_session, mode_stats)
"""

from .aggregator import PersistOutcome, aggregate, publish
from .clock import ClockHandle, SessionClock
from .engine import ExamSession, SessionPhase, SessionState
from .service import SessionService

__all__ = [
    "ClockHandle",
    "ExamSession",
    "PersistOutcome",
    "SessionClock",
    "SessionPhase",
    "SessionService",
    "SessionState",
    "aggregate",
    "publish",
]
