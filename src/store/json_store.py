"""
JSON file store for exams, learner progress and finished sessions.

Layout under ``data_dir``:
    exams/{exam_id}.json                              exam definition
    progress/{user_id}/{exam_id}.json                 question_id -> last result
    sessions/{user_id}/{exam_id}/{started}_{mode}.json  finished session

Progress keeps only the most recent result per question, so outcomes always
reflect the last attempt. Session files are keyed by start time and mode, so
persisting the same session twice overwrites instead of duplicating.
"""

from __future__ import annotations

import asyncio
import json
import math
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from config import get_settings
from src.core.errors import ExamFormatError, ExamNotFoundError
from src.core.models import Outcome, Question, QuestionResult, SessionMode, SessionSummary
from src.store.schema import ExamModel


def _check_segment(value: str, what: str) -> str:
    """Reject ids that would escape their directory."""
    if not value or value in (".", "..") or "/" in value or "\\" in value:
        raise ValueError(f"Invalid {what}: {value!r}")
    return value


def _read_json(filepath: Path) -> Any:
    with open(filepath, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(filepath: Path, data: Any) -> None:
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


class JsonExamStore:
    """
    File-backed question store.

    Implements the QuestionStore protocol plus the bookkeeping a result sink
    needs (progress upserts, session files, attempt counts).
    """

    def __init__(self, data_dir: Path | None = None):
        self.data_dir = Path(data_dir) if data_dir is not None else get_settings().data_dir
        self.exams_dir = self.data_dir / "exams"
        self.progress_dir = self.data_dir / "progress"
        self.sessions_dir = self.data_dir / "sessions"
        self.exams_dir.mkdir(parents=True, exist_ok=True)

    # ========================================
    # Exams
    # ========================================

    def load_exam(self, exam_id: str) -> ExamModel:
        """Load and validate an exam definition."""
        filepath = self.exams_dir / f"{_check_segment(exam_id, 'exam id')}.json"
        if not filepath.exists():
            raise ExamNotFoundError(exam_id)
        return self._parse_exam(filepath)

    def import_exam(self, source: Path) -> ExamModel:
        """
        Validate an exam file and copy it into the store.

        Re-importing an exam with the same id replaces it.

        Raises:
            ExamFormatError: file is not valid JSON or fails validation
        """
        exam = self._parse_exam(Path(source))
        _write_json(self.exams_dir / f"{exam.id}.json", exam.model_dump())
        logger.info(f"Imported exam {exam.id} ({len(exam.questions)} questions)")
        return exam

    def list_exams(self) -> list[ExamModel]:
        """All valid exams in the store, sorted by id. Broken files are skipped."""
        exams = []
        for filepath in sorted(self.exams_dir.glob("*.json")):
            try:
                exams.append(self._parse_exam(filepath))
            except ExamFormatError as e:
                logger.warning(f"Skipping {filepath.name}: {e}")
        return exams

    def fetch_pool(self, exam_id: str) -> list[Question]:
        return self.load_exam(exam_id).to_domain()

    def _parse_exam(self, filepath: Path) -> ExamModel:
        try:
            data = _read_json(filepath)
        except FileNotFoundError:
            raise ExamFormatError(f"{filepath}: file not found")
        except json.JSONDecodeError as e:
            raise ExamFormatError(f"{filepath}: invalid JSON ({e})") from e
        try:
            return ExamModel.model_validate(data)
        except ValidationError as e:
            raise ExamFormatError(f"{filepath}: {e}") from e

    # ========================================
    # Progress
    # ========================================

    def _progress_path(self, exam_id: str, user_id: str) -> Path:
        return (
            self.progress_dir
            / _check_segment(user_id, "user id")
            / f"{_check_segment(exam_id, 'exam id')}.json"
        )

    def load_progress(self, exam_id: str, user_id: str) -> dict[str, bool | None]:
        """question_id -> last result (None for an ungraded attempt). Empty without history."""
        filepath = self._progress_path(exam_id, user_id)
        if not filepath.exists():
            return {}
        try:
            data = _read_json(filepath)
        except json.JSONDecodeError:
            logger.warning(f"Corrupt progress file {filepath}, treating as empty")
            return {}
        return {str(k): (None if v is None else bool(v)) for k, v in data.items()}

    def fetch_outcomes(self, exam_id: str, user_id: str) -> dict[str, Outcome]:
        return {
            question_id: Outcome.from_last_result(last_result)
            for question_id, last_result in self.load_progress(exam_id, user_id).items()
        }

    def progress_percent(self, exam_id: str, user_id: str) -> int:
        """Share of the exam attempted at least once, rounded to a whole percent."""
        questions = self.fetch_pool(exam_id)
        if not questions:
            return 0
        progress = self.load_progress(exam_id, user_id)
        attempted = sum(1 for q in questions if q.id in progress)
        return math.floor(attempted * 100 / len(questions) + 0.5)

    def record_results(
        self,
        exam_id: str,
        user_id: str,
        results: tuple[QuestionResult, ...] | list[QuestionResult],
    ) -> None:
        """Upsert the last result of every question in ``results``."""
        progress = self.load_progress(exam_id, user_id)
        for result in results:
            progress[result.question.id] = result.is_correct
        _write_json(self._progress_path(exam_id, user_id), progress)

    # ========================================
    # Sessions
    # ========================================

    def _session_dir(self, exam_id: str, user_id: str) -> Path:
        return (
            self.sessions_dir
            / _check_segment(user_id, "user id")
            / _check_segment(exam_id, "exam id")
        )

    def save_session(
        self,
        exam_id: str,
        user_id: str,
        mode: SessionMode,
        started_at: datetime,
        ended_at: datetime,
        summary: SessionSummary,
    ) -> Path:
        filepath = (
            self._session_dir(exam_id, user_id)
            / f"{started_at.strftime('%Y%m%dT%H%M%S%f')}_{mode.value}.json"
        )
        _write_json(
            filepath,
            {
                "exam_id": exam_id,
                "user_id": user_id,
                "mode": mode.value,
                "started_at": started_at.isoformat(),
                "ended_at": ended_at.isoformat(),
                "score": summary.correct_count,
                "total_questions": summary.total_questions,
                "total_time_spent": summary.total_time_spent,
                "questions": [r.to_dict() for r in summary.results],
            },
        )
        return filepath

    def session_counts(self, exam_id: str, user_id: str) -> dict[SessionMode, int]:
        """Finished sessions per mode for this learner and exam."""
        counts: Counter[str] = Counter()
        session_dir = self._session_dir(exam_id, user_id)
        if session_dir.exists():
            for filepath in session_dir.glob("*.json"):
                try:
                    counts[_read_json(filepath).get("mode", "")] += 1
                except json.JSONDecodeError:
                    continue
        return {mode: counts.get(mode.value, 0) for mode in SessionMode}


class JsonResultSink:
    """Result sink writing finished sessions into a JsonExamStore for one learner."""

    def __init__(self, store: JsonExamStore, user_id: str):
        self.store = store
        self.user_id = user_id

    async def persist(
        self,
        exam_id: str,
        mode: SessionMode,
        started_at: datetime,
        ended_at: datetime,
        summary: SessionSummary,
    ) -> bool:
        # File writes stay off the loop that drives the countdown
        await asyncio.to_thread(self._write, exam_id, mode, started_at, ended_at, summary)
        return True

    def _write(
        self,
        exam_id: str,
        mode: SessionMode,
        started_at: datetime,
        ended_at: datetime,
        summary: SessionSummary,
    ) -> None:
        self.store.save_session(exam_id, self.user_id, mode, started_at, ended_at, summary)
        self.store.record_results(exam_id, self.user_id, summary.results)
