"""Exam grading module.

Responsibilities:
- Grade a submitted exam with the LLM (partial credit for short answers)
- Reconcile the LLM's totals with the per-question points it awarded
- Grade locally when the LLM is unavailable, slow or returns bad output

Invariant for every result: ``percentage == round(100 * totalScore / maxScore)``
with halves rounded up.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tutoring.config.app_config import load_app_config
from tutoring.core.exam_models import Exam, ExamQuestion, clean_number, normalize_answers
from tutoring.llm.client import LLMClient, LLMError, LLMTimeoutError
from tutoring.prompts.registry import get_prompt
from tutoring.utils.text_utils import round_half_up

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

GRADING_TEMPERATURE = 0.1
GRADING_MAX_TOKENS = 1500

# Short-answer partial credit under local grading
SUBSTANTIAL_ANSWER_CHARS = 10
SUBSTANTIAL_CREDIT = 0.7
MINIMAL_CREDIT = 0.3

NO_ANSWER = "No answer provided"

MOCK_MESSAGE_NOT_CONFIGURED = "Using automated grading - OpenAI API key not available"
MOCK_MESSAGE_TIMEOUT = "Using automated grading - grading took too long"
MOCK_MESSAGE_FAILED = "Using automated grading - OpenAI grading failed"

FEEDBACK_CORRECT = "Great job! You demonstrated a good understanding of this concept."
FEEDBACK_INCORRECT = "You can improve on this question. Review the topic and try again for better results."


class ExamGradingError(Exception):
    """Error during exam grading."""

    pass


# =============================================================================
# LLM PAYLOAD SCHEMA
# =============================================================================


class _QuestionResultPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    questionId: int | str
    isCorrect: bool = False
    pointsEarned: float = 0
    feedback: str = ""

    @field_validator("pointsEarned", mode="before")
    @classmethod
    def _none_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("pointsEarned")
    @classmethod
    def _finite(cls, v: float) -> float:
        return v if math.isfinite(v) else 0


class _GradingPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    totalScore: float | None = None
    maxScore: float | None = None
    percentage: float | None = None
    feedback: str = ""
    questionResults: list[_QuestionResultPayload] = Field(min_length=1)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class QuestionResult:
    """Grade for a single exam question."""

    question_id: int
    user_answer: str
    is_correct: bool
    points_earned: float
    max_points: float
    feedback: str
    correct_answer: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "questionId": self.question_id,
            "userAnswer": self.user_answer,
            "isCorrect": self.is_correct,
            "pointsEarned": clean_number(float(self.points_earned)),
            "maxPoints": clean_number(float(self.max_points)),
            "feedback": self.feedback,
            "correctAnswer": self.correct_answer,
        }


@dataclass
class GradingResult:
    """Complete grading of one exam submission."""

    total_score: float
    max_score: float
    percentage: int
    feedback: str
    question_results: list[QuestionResult] = field(default_factory=list)
    is_mock: bool = False
    mock_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API response shape."""
        result: dict[str, Any] = {
            "totalScore": clean_number(float(self.total_score)),
            "maxScore": clean_number(float(self.max_score)),
            "percentage": self.percentage,
            "feedback": self.feedback,
            "questionResults": [r.to_dict() for r in self.question_results],
        }
        if self.is_mock:
            result["isMock"] = True
            result["mockMessage"] = self.mock_message
        return result


# =============================================================================
# SCORING HELPERS
# =============================================================================


def compute_percentage(total_score: float, max_score: float) -> int:
    """round(100 * total / max), halves up; 0 when the exam has no points."""
    if max_score <= 0:
        return 0
    return round_half_up(total_score / max_score * 100)


def summary_feedback(total_score: float, max_score: float, percentage: int) -> str:
    """Overall feedback line used by local grading."""
    if percentage >= 80:
        verdict = "Excellent work! You have a strong understanding of the material."
    elif percentage >= 60:
        verdict = "Good effort! Review the areas where you lost points to improve further."
    else:
        verdict = "Keep studying! Focus on understanding the fundamental concepts to improve your score."
    return (
        f"You scored {clean_number(float(total_score))} out of {clean_number(float(max_score))} "
        f"points ({percentage}%). {verdict}"
    )


def _grade_question_locally(question: ExamQuestion, answer: str) -> QuestionResult:
    """Deterministic grading of one question. NO LLM involved."""
    trimmed = answer.strip()
    is_correct = False
    points_earned: float = 0

    if question.is_multiple_choice:
        is_correct = trimmed.lower() == question.correct_answer.strip().lower()
        points_earned = question.points if is_correct else 0
    elif len(trimmed) > SUBSTANTIAL_ANSWER_CHARS:
        points_earned = round_half_up(question.points * SUBSTANTIAL_CREDIT)
        is_correct = True
    elif len(trimmed) > 0:
        points_earned = round_half_up(question.points * MINIMAL_CREDIT)

    return QuestionResult(
        question_id=question.id,
        user_answer=answer or NO_ANSWER,
        is_correct=is_correct,
        points_earned=points_earned,
        max_points=question.points,
        feedback=FEEDBACK_CORRECT if is_correct else FEEDBACK_INCORRECT,
        correct_answer=question.correct_answer,
    )


# =============================================================================
# GRADING FUNCTIONS
# =============================================================================


def grade_locally(exam: Exam, answers: dict[Any, Any] | None) -> GradingResult:
    """Grade an exam without the LLM.

    Multiple choice: case-insensitive exact match for full credit.
    Short answer: 70% (rounded) for more than 10 characters, 30% (rounded)
    for anything shorter, 0 when empty.
    """
    normalized = normalize_answers(answers)
    results = [_grade_question_locally(q, normalized.get(str(q.id), "")) for q in exam.questions]

    total = sum(r.points_earned for r in results)
    max_score = float(exam.total_points)
    percentage = compute_percentage(total, max_score)

    return GradingResult(
        total_score=total,
        max_score=max_score,
        percentage=percentage,
        feedback=summary_feedback(total, max_score, percentage),
        question_results=results,
    )


def reconcile_grading(payload: dict[str, Any], exam: Exam, answers: dict[Any, Any] | None) -> GradingResult:
    """Turn an LLM grading payload into a consistent GradingResult.

    Per-question points are clamped to [0, points]; questions the LLM skipped
    are graded locally. Totals and percentage are always re-derived from the
    per-question points; a disagreeing LLM total or percentage is logged and
    replaced.

    Raises:
        ExamGradingError: If the payload does not match the schema
    """
    try:
        data = _GradingPayload.model_validate(payload)
    except ValidationError as e:
        raise ExamGradingError(f"Invalid grading structure: {e.error_count()} errors") from e

    normalized = normalize_answers(answers)
    by_id = {str(r.questionId): r for r in data.questionResults}

    results: list[QuestionResult] = []
    for question in exam.questions:
        answer = normalized.get(str(question.id), "")
        graded = by_id.get(str(question.id))
        if graded is None:
            logger.warning("grading_question_missing", question_id=question.id)
            results.append(_grade_question_locally(question, answer))
            continue

        points = max(0.0, min(float(question.points), float(graded.pointsEarned)))
        results.append(
            QuestionResult(
                question_id=question.id,
                user_answer=answer or NO_ANSWER,
                is_correct=graded.isCorrect,
                points_earned=points,
                max_points=question.points,
                feedback=graded.feedback or (FEEDBACK_CORRECT if graded.isCorrect else FEEDBACK_INCORRECT),
                correct_answer=question.correct_answer,
            )
        )

    total = sum(r.points_earned for r in results)
    max_score = float(exam.total_points)
    percentage = compute_percentage(total, max_score)

    if data.totalScore is not None and abs(data.totalScore - total) > 1e-6:
        logger.warning("grading_total_mismatch", reported=data.totalScore, derived=total)
    if data.percentage is not None and round_half_up(data.percentage) != percentage:
        logger.warning("grading_percentage_mismatch", reported=data.percentage, derived=percentage)

    return GradingResult(
        total_score=total,
        max_score=max_score,
        percentage=percentage,
        feedback=data.feedback or summary_feedback(total, max_score, percentage),
        question_results=results,
    )


def build_grading_prompt(exam: Exam, answers: dict[Any, Any] | None) -> str:
    """Render the grading prompt with one line per question."""
    normalized = normalize_answers(answers)
    lines = []
    for index, q in enumerate(exam.questions, start=1):
        student = normalized.get(str(q.id)) or "No answer"
        lines.append(
            f'Q{index}({clean_number(float(q.points))}pts): {q.type} - "{q.question}" '
            f'| Correct: "{q.correct_answer}" | Student: "{student}"'
        )

    return get_prompt(
        "exam/grade",
        title=exam.title,
        question_count=len(exam.questions),
        total_points=exam.total_points,
        question_lines="\n".join(lines),
    )


def _default_client() -> LLMClient:
    return LLMClient(model=load_app_config().llm.grading_model)


def request_grading(
    exam: Exam,
    answers: dict[Any, Any] | None,
    client: LLMClient | None = None,
) -> GradingResult:
    """Grade with the LLM, without falling back.

    Raises:
        LLMTimeoutError: If grading exceeded the grading timeout
        ExamGradingError: On any other LLM failure or bad payload
    """
    client = client or _default_client()
    settings = load_app_config().llm

    try:
        payload = client.simple_json(
            system_prompt=get_prompt("exam/grade_system"),
            user_message=build_grading_prompt(exam, answers),
            temperature=GRADING_TEMPERATURE,
            max_tokens=GRADING_MAX_TOKENS,
            timeout=settings.grading_timeout,
        )
    except LLMTimeoutError:
        raise
    except LLMError as e:
        raise ExamGradingError(str(e)) from e

    result = reconcile_grading(payload, exam, answers)
    logger.info("exam_graded", questions=len(exam.questions), percentage=result.percentage)
    return result


def grade_exam(
    exam: Exam,
    answers: dict[Any, Any] | None,
    client: LLMClient | None = None,
) -> GradingResult:
    """Grade an exam, falling back to local grading on any failure.

    Args:
        exam: The exam as generated
        answers: Mapping of question id to the student's answer
        client: Optional pre-configured LLM client (for testing)

    Returns:
        GradingResult; ``is_mock`` is set when local grading was used
    """
    client = client or _default_client()

    if not client.is_configured:
        logger.warning("exam_grading_not_configured")
        result = grade_locally(exam, answers)
        result.is_mock = True
        result.mock_message = MOCK_MESSAGE_NOT_CONFIGURED
        return result

    try:
        return request_grading(exam, answers, client)
    except LLMTimeoutError as e:
        logger.error("exam_grading_timeout", error=str(e))
        message = MOCK_MESSAGE_TIMEOUT
    except ExamGradingError as e:
        logger.error("exam_grading_failed", error=str(e))
        message = MOCK_MESSAGE_FAILED

    result = grade_locally(exam, answers)
    result.is_mock = True
    result.mock_message = message
    return result
