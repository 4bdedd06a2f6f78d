"""Exam data classes shared by generation, grading and the session FSM.

An exam is ephemeral: generated per request, held by the client for the
attempt and only persisted embedded in an exam result's answers blob.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal

QuestionType = Literal["multiple-choice", "short-answer"]

MC_OPTION_COUNT = 4


def clean_number(value: float) -> float | int:
    """Render whole numbers as int so JSON shows 80 rather than 80.0."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


@dataclass
class ExamQuestion:
    """A single exam question."""

    id: int
    type: QuestionType
    question: str
    correct_answer: str
    points: float
    options: list[str] = field(default_factory=list)

    @property
    def is_multiple_choice(self) -> bool:
        return self.type == "multiple-choice"

    def to_dict(self) -> dict[str, Any]:
        """Convert to the client JSON shape."""
        result: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "question": self.question,
        }
        if self.is_multiple_choice:
            result["options"] = list(self.options)
        result["correctAnswer"] = self.correct_answer
        result["points"] = clean_number(self.points)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExamQuestion:
        points = float(data.get("points", 0))
        if not math.isfinite(points) or points < 0:
            raise ValueError(f"Question {data.get('id')} has invalid points: {points}")
        return cls(
            id=int(data["id"]),
            type=data["type"],
            question=data["question"],
            correct_answer=str(data.get("correctAnswer", "")),
            points=points,
            options=list(data.get("options") or []),
        )


@dataclass
class Exam:
    """A generated practice exam."""

    title: str
    duration: int  # minutes
    questions: list[ExamQuestion]

    @property
    def total_points(self) -> float | int:
        return clean_number(float(sum(q.points for q in self.questions)))

    @property
    def question_ids(self) -> list[int]:
        return [q.id for q in self.questions]

    def get_question(self, question_id: int | str) -> ExamQuestion | None:
        for q in self.questions:
            if str(q.id) == str(question_id):
                return q
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "duration": self.duration,
            "totalPoints": self.total_points,
            "questions": [q.to_dict() for q in self.questions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Exam:
        return cls(
            title=data.get("title", "Practice Exam"),
            duration=int(data.get("duration", 30)),
            questions=[ExamQuestion.from_dict(q) for q in data.get("questions", [])],
        )


def normalize_answers(answers: dict[Any, Any] | None) -> dict[str, str]:
    """Key answers by question id as string; JSON objects only have string keys."""
    if not answers:
        return {}
    return {str(k): "" if v is None else str(v) for k, v in answers.items()}
