"""Exam result endpoints.

Results are immutable: created once when an attempt completes, then only read.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends

from tutoring.core.auth import Principal
from tutoring.core.exam_grader import compute_percentage
from tutoring.db import exam_results_repository
from tutoring.utils.text_utils import round_half_up
from tutoring.web.dependencies import require_principal
from tutoring.web.errors import BadRequestError, NotFoundError
from tutoring.web.schemas import ExamResultCreateRequest

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/exam-results", tags=["exam-results"])


@router.get("")
def list_exam_results(principal: Principal = Depends(require_principal)) -> list[dict[str, Any]]:
    """List the user's results, newest first."""
    return [r.to_dict() for r in exam_results_repository.list_results(principal.id)]


@router.post("")
def create_exam_result(
    body: ExamResultCreateRequest,
    principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    """Save a completed attempt.

    The stored percentage is always recomputed from ``score`` and
    ``maxScore``; a disagreeing client value is logged and discarded.
    """
    if body.score > body.maxScore:
        raise BadRequestError("Score cannot exceed max score")

    percentage = compute_percentage(body.score, body.maxScore)
    if body.percentage is not None and round_half_up(body.percentage) != percentage:
        logger.warning(
            "exam_result_percentage_mismatch",
            user_id=principal.id,
            submitted=body.percentage,
            computed=percentage,
        )

    record = exam_results_repository.create_result(
        user_id=principal.id,
        subject=body.subject,
        score=body.score,
        max_score=body.maxScore,
        percentage=percentage,
        total_questions=body.totalQuestions,
        time_spent=body.timeSpent,
        answers=body.answers,
        feedback=body.feedback,
    )
    return record.to_dict()


@router.get("/{result_id}")
def get_exam_result(result_id: str, principal: Principal = Depends(require_principal)) -> dict[str, Any]:
    """One owned result with its per-question grading pulled out of ``answers``."""
    record = exam_results_repository.get_result(principal.id, result_id)
    if record is None:
        raise NotFoundError("Exam result not found")
    return {**record.to_dict(), "questionResults": record.question_results}
