"""
Store module: collaborator protocols and the JSON file implementation.

- base: QuestionStore / ResultSink protocols consumed by the session core
- schema: pydantic models validating exam files
- json_store: JsonExamStore (questions, progress, sessions) and JsonResultSink
"""

from .base import QuestionStore, ResultSink
from .json_store import JsonExamStore, JsonResultSink
from .schema import ChoiceModel, ExamModel, QuestionModel, TagModel

__all__ = [
    "ChoiceModel",
    "ExamModel",
    "JsonExamStore",
    "JsonResultSink",
    "QuestionModel",
    "QuestionStore",
    "ResultSink",
    "TagModel",
]
