"""Repository functions for exam results.

Results are immutable after creation; there is no update function.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from tutoring.db.database import get_db, with_db_retry
from tutoring.db.models import ExamResult, as_utc

logger = structlog.get_logger(__name__)


@dataclass
class ExamResultRecord:
    """Exam result record from database."""

    id: str
    user_id: str
    subject: str
    score: float
    max_score: float
    percentage: int
    total_questions: int
    time_spent: int
    answers: dict[str, Any] | None
    feedback: str | None
    created_at: datetime

    @property
    def question_results(self) -> list[dict[str, Any]]:
        """Per-question grading embedded in the answers blob."""
        if isinstance(self.answers, dict):
            results = self.answers.get("questionResults")
            if isinstance(results, list):
                return results
        return []

    def to_dict(self) -> dict[str, Any]:
        """Row representation returned by the API."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "subject": self.subject,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "total_questions": self.total_questions,
            "time_spent": self.time_spent,
            "answers": self.answers,
            "feedback": self.feedback,
            "created_at": self.created_at.isoformat(),
        }


def _to_record(row: ExamResult) -> ExamResultRecord:
    return ExamResultRecord(
        id=row.id,
        user_id=row.user_id,
        subject=row.subject,
        score=row.score,
        max_score=row.max_score,
        percentage=row.percentage,
        total_questions=row.total_questions,
        time_spent=row.time_spent,
        answers=row.answers,
        feedback=row.feedback,
        created_at=as_utc(row.created_at),
    )


@with_db_retry
def list_results(user_id: str) -> list[ExamResultRecord]:
    """List a user's exam results, newest first."""
    with get_db() as session:
        rows = (
            session.query(ExamResult)
            .filter(ExamResult.user_id == user_id)
            .order_by(ExamResult.created_at.desc())
            .all()
        )
        return [_to_record(r) for r in rows]


@with_db_retry
def get_result(user_id: str, result_id: str) -> ExamResultRecord | None:
    """Get one result owned by the user."""
    with get_db() as session:
        row = (
            session.query(ExamResult)
            .filter(ExamResult.id == result_id, ExamResult.user_id == user_id)
            .first()
        )
        return _to_record(row) if row is not None else None


@with_db_retry
def create_result(
    user_id: str,
    subject: str,
    score: float,
    max_score: float,
    percentage: int,
    total_questions: int,
    time_spent: int = 0,
    answers: dict[str, Any] | None = None,
    feedback: str | None = None,
) -> ExamResultRecord:
    """Insert a new exam result."""
    with get_db() as session:
        row = ExamResult(
            user_id=user_id,
            subject=subject,
            score=score,
            max_score=max_score,
            percentage=percentage,
            total_questions=total_questions,
            time_spent=time_spent,
            answers=answers,
            feedback=feedback,
        )
        session.add(row)
        session.flush()
        record = _to_record(row)

    logger.info(
        "exam_result_created",
        result_id=record.id,
        subject=subject,
        percentage=percentage,
    )
    return record
