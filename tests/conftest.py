"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import asyncio
import json
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.core.models import Choice, Question  # noqa: E402
from src.session.clock import SessionClock  # noqa: E402
from src.store.json_store import JsonExamStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (file store + engine)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeTime:
    """
    Controllable monotonic clock.

    ``sleep`` advances simulated time instead of waiting, then yields to the
    event loop so other tasks get a turn.
    """

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, delay: float) -> None:
        self.now += delay
        await asyncio.sleep(0)


def make_question(question_id: str, correct: str = "A", labels: str = "ABCD") -> Question:
    """Build a question whose correct choice is ``correct``."""
    return Question(
        id=question_id,
        text=f"Question {question_id}?",
        choices=tuple(
            Choice(identifier=label, text=f"Option {label}", is_correct=(label == correct))
            for label in labels
        ),
        explanation=f"Because {correct}.",
    )


def exam_payload(exam_id: str = "networking", count: int = 5) -> dict:
    """Exam file contents with ``count`` questions, all answered by 'A'."""
    return {
        "id": exam_id,
        "title": "Networking Basics",
        "tags": [{"name": "level", "value": "intro"}],
        "questions": [
            {
                "id": f"q{i}",
                "text": f"Which layer is number {i}?",
                "explanation": None,
                "choices": [
                    {"identifier": "A", "text": "Right one", "is_correct": True},
                    {"identifier": "B", "text": "Wrong one", "is_correct": False},
                    {"identifier": "C", "text": "Also wrong", "is_correct": False},
                ],
            }
            for i in range(1, count + 1)
        ],
    }


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def questions():
    """Five questions q1..q5, each answered by 'A'."""
    return [make_question(f"q{i}") for i in range(1, 6)]


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def fake_clock(fake_time):
    """SessionClock ticking once per simulated second."""
    return SessionClock(tick_interval=1.0, time_source=fake_time, sleep=fake_time.sleep)


@pytest.fixture
def exam_file(tmp_path):
    """Valid exam JSON file on disk."""
    filepath = tmp_path / "networking.json"
    filepath.write_text(json.dumps(exam_payload()), encoding="utf-8")
    return filepath


@pytest.fixture
def store(tmp_path, exam_file):
    """JsonExamStore with the 'networking' exam imported."""
    store = JsonExamStore(tmp_path / "data")
    store.import_exam(exam_file)
    return store


@pytest.fixture
def question_factory():
    """Factory for questions: question_factory("q9", correct="B")."""
    return make_question


@pytest.fixture
def payload_factory():
    """Factory for exam file dicts: payload_factory("bio", count=3)."""
    return exam_payload
