"""
Exceptions raised by exam-drill collaborators.

The session core itself never raises for invalid transitions; these cover
caller input and store failures.
"""


class ExamDrillError(Exception):
    """Base class for all exam-drill errors."""


class ExamNotFoundError(ExamDrillError):
    """No exam with the requested id exists in the store."""

    def __init__(self, exam_id: str):
        self.exam_id = exam_id
        super().__init__(f"Exam not found: {exam_id}")


class ExamFormatError(ExamDrillError):
    """Exam data failed validation (bad JSON, missing fields, broken choices)."""
