"""Practice exam generation and grading endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends

from tutoring.core.auth import Principal
from tutoring.core.exam_generator import generate_exam
from tutoring.core.exam_grader import grade_exam
from tutoring.core.exam_models import Exam
from tutoring.llm.client import LLMClient
from tutoring.web.dependencies import get_exam_client, get_grading_client, require_principal
from tutoring.web.errors import BadRequestError
from tutoring.web.schemas import GenerateExamRequest, GradeExamRequest

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["exams"])


@router.post("/generate-exam")
def generate(
    body: GenerateExamRequest,
    client: LLMClient = Depends(get_exam_client),
) -> dict[str, Any]:
    """Generate a practice exam; the templated exam is served on any failure."""
    if not body.subject:
        raise BadRequestError("Subject is required")

    result = generate_exam(body.subject, client=client)
    return result.to_dict()


@router.post("/grade-exam")
def grade(
    body: GradeExamRequest,
    client: LLMClient = Depends(get_grading_client),
    principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    """Grade a submission; local grading is used on any failure."""
    if body.examData is None or body.answers is None:
        raise BadRequestError("Exam data and answers are required")

    try:
        exam = Exam.from_dict(body.examData)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.info("grade_exam_bad_exam_data", error=str(e))
        raise BadRequestError("Invalid exam data", details=str(e)) from e
    if not exam.questions:
        raise BadRequestError("Invalid exam data", details="Exam has no questions")

    result = grade_exam(exam, body.answers, client=client)
    logger.info("exam_grading_served", user_id=principal.id, percentage=result.percentage, is_mock=result.is_mock)
    return result.to_dict()
