"""
Exam file schema.

Exam files are validated here before any question reaches a session, so the
session core can rely on every question having exactly one correct choice
and unique choice identifiers.
"""
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.models import Choice, Question


class ChoiceModel(BaseModel):
    """One answer option in an exam file."""

    identifier: str = Field(..., min_length=1, description="Choice label, e.g. 'A'")
    text: str = Field(..., description="Choice body")
    is_correct: bool = Field(False, description="Exactly one choice per question is correct")


class QuestionModel(BaseModel):
    """A question in an exam file."""

    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    explanation: str | None = None
    choices: list[ChoiceModel] = Field(..., min_length=2)

    @model_validator(mode="after")
    def check_choices(self) -> "QuestionModel":
        identifiers = [c.identifier for c in self.choices]
        if len(set(identifiers)) != len(identifiers):
            raise ValueError(f"question {self.id}: duplicate choice identifiers {identifiers}")
        correct = sum(1 for c in self.choices if c.is_correct)
        if correct != 1:
            raise ValueError(f"question {self.id}: expected exactly one correct choice, found {correct}")
        return self

    def to_domain(self) -> Question:
        return Question(
            id=self.id,
            text=self.text,
            explanation=self.explanation,
            choices=tuple(
                Choice(identifier=c.identifier, text=c.text, is_correct=c.is_correct)
                for c in self.choices
            ),
        )


class TagModel(BaseModel):
    """Free-form exam metadata (name/value pair)."""

    name: str
    value: str


class ExamModel(BaseModel):
    """A whole exam file."""

    id: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9_.-]+$")
    title: str = Field(..., min_length=1)
    tags: list[TagModel] = Field(default_factory=list)
    questions: list[QuestionModel] = Field(default_factory=list)

    @field_validator("questions")
    @classmethod
    def check_unique_ids(cls, questions: list[QuestionModel]) -> list[QuestionModel]:
        ids = [q.id for q in questions]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate question ids: {duplicates}")
        return questions

    def to_domain(self) -> list[Question]:
        return [q.to_domain() for q in self.questions]
