"""Practice exam generation.

Responsibilities:
- Build the per-subject generation prompt from the subject catalog
- Call the LLM and decode its answer through one strict schema
- Repair multiple-choice questions whose correct answer is not an option
- Fall back to a deterministic templated exam on any failure
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tutoring.config.app_config import load_app_config
from tutoring.config.subjects import SubjectConfig, get_subject
from tutoring.core.exam_models import MC_OPTION_COUNT, Exam, ExamQuestion, clean_number
from tutoring.llm.client import LLMClient, LLMError
from tutoring.prompts.registry import get_prompt, has_prompt

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

GENERATION_TEMPERATURE = 0.7
GENERATION_MAX_TOKENS = 8000

MOCK_MESSAGE_NOT_CONFIGURED = "Using mock exam - OpenAI API key not available"
MOCK_MESSAGE_FAILED = "Using mock exam - OpenAI generation failed"

FALLBACK_MC_OPTIONS = [
    "Understanding fundamental principles and their applications",
    "Memorizing formulas without understanding context",
    "Avoiding practical applications entirely",
    "Focusing only on theoretical aspects without practice",
]


class ExamGenerationError(Exception):
    """Error during exam generation."""

    pass


# =============================================================================
# LLM PAYLOAD SCHEMA
# =============================================================================


class _QuestionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    type: Literal["multiple-choice", "short-answer"]
    question: str = Field(min_length=1)
    options: list[str] | None = None
    correctAnswer: str = ""
    points: float | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower().replace("_", "-").replace(" ", "-")
        return v

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        if isinstance(v, str):
            return int(v) if v.strip().isdigit() else None
        return v

    @field_validator("correctAnswer", mode="before")
    @classmethod
    def _coerce_answer(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(o) for o in v]
        return v


class _ExamPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    duration: int | None = None
    totalPoints: float | None = None
    questions: list[_QuestionPayload] = Field(min_length=1)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class GenerationResult:
    """Result of an exam generation request."""

    exam: Exam
    is_mock: bool = False
    mock_message: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API response shape."""
        result = self.exam.to_dict()
        if self.is_mock:
            result["isMock"] = True
            result["mockMessage"] = self.mock_message
        return result


# =============================================================================
# PROMPTS
# =============================================================================


def build_generation_prompt(subject: SubjectConfig) -> str:
    """Render the generation prompt for a subject."""
    instructions_key = f"exam/subjects/{subject.id}"
    subject_instructions = get_prompt(instructions_key) if has_prompt(instructions_key) else ""

    return get_prompt(
        "exam/generate",
        title=subject.title,
        level=subject.level,
        total_questions=subject.total_questions,
        mc_questions=subject.mc_questions,
        mc_points=clean_number(float(subject.mc_points)),
        mc_total=clean_number(float(subject.mc_questions * subject.mc_points)),
        sa_questions=subject.sa_questions,
        sa_points=clean_number(float(subject.sa_points)),
        sa_total=clean_number(float(subject.sa_questions * subject.sa_points)),
        total_points=subject.total_points,
        duration=subject.duration,
        topics=subject.topics,
        exam_style=subject.exam_style or "standard practice exam",
        subject_instructions=subject_instructions.strip(),
    )


# =============================================================================
# VALIDATION / REPAIR
# =============================================================================


def parse_exam_payload(payload: dict[str, Any], subject: SubjectConfig) -> tuple[Exam, list[str]]:
    """Validate an LLM exam payload and repair what can be repaired.

    Repairs:
    - correctAnswer not among the options -> first option
    - missing or duplicate ids -> sequential ids
    - missing points -> the subject's per-type points

    Returns:
        (exam, warnings)

    Raises:
        ExamGenerationError: If the payload does not match the schema or a
            multiple-choice question does not have exactly 4 options
    """
    try:
        data = _ExamPayload.model_validate(payload)
    except ValidationError as e:
        raise ExamGenerationError(f"Invalid exam structure: {e.error_count()} errors") from e

    warnings: list[str] = []

    ids = [q.id for q in data.questions]
    renumber = any(i is None for i in ids) or len(set(ids)) != len(ids)
    if renumber:
        warnings.append("Question ids missing or duplicated; renumbered")

    questions: list[ExamQuestion] = []
    for index, q in enumerate(data.questions, start=1):
        qid = index if renumber else q.id
        if q.type == "multiple-choice":
            options = q.options or []
            if len(options) != MC_OPTION_COUNT:
                raise ExamGenerationError(
                    f"Question {index}: expected {MC_OPTION_COUNT} options, got {len(options)}"
                )
            correct = q.correctAnswer
            if correct not in options:
                warnings.append(f"Question {index}: correct answer not in options; using first option")
                correct = options[0]
            points = q.points if q.points is not None else subject.mc_points
            questions.append(ExamQuestion(qid, "multiple-choice", q.question, correct, float(points), list(options)))
        else:
            points = q.points if q.points is not None else subject.sa_points
            questions.append(ExamQuestion(qid, "short-answer", q.question, q.correctAnswer, float(points)))

    if len(questions) != subject.total_questions:
        warnings.append(f"Expected {subject.total_questions} questions, got {len(questions)}")

    exam = Exam(
        title=data.title or subject.title,
        duration=data.duration or subject.duration,
        questions=questions,
    )

    if data.totalPoints is not None and clean_number(float(data.totalPoints)) != exam.total_points:
        warnings.append(f"Declared totalPoints {data.totalPoints} != sum of points {exam.total_points}")

    return exam, warnings


# =============================================================================
# FALLBACK
# =============================================================================


def build_fallback_exam(subject: SubjectConfig) -> Exam:
    """Deterministic templated exam matching the subject's shape."""
    name = subject.display_name
    questions: list[ExamQuestion] = []

    for i in range(1, subject.mc_questions + 1):
        questions.append(
            ExamQuestion(
                id=i,
                type="multiple-choice",
                question=f"What is an important concept to understand in {name}?",
                correct_answer=FALLBACK_MC_OPTIONS[0],
                points=float(subject.mc_points),
                options=list(FALLBACK_MC_OPTIONS),
            )
        )

    for i in range(1, subject.sa_questions + 1):
        questions.append(
            ExamQuestion(
                id=subject.mc_questions + i,
                type="short-answer",
                question=f"Explain why understanding fundamental concepts is important in {name}.",
                correct_answer=(
                    f"Understanding fundamental concepts in {name} allows students to apply knowledge "
                    "to new situations, solve complex problems, and build connections between different "
                    "topics. This approach provides better long-term retention and practical application skills."
                ),
                points=float(subject.sa_points),
            )
        )

    return Exam(title=subject.title, duration=subject.duration, questions=questions)


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


def _default_client() -> LLMClient:
    return LLMClient(model=load_app_config().llm.exam_model)


def request_exam(subject_id: str, client: LLMClient | None = None) -> tuple[Exam, list[str]]:
    """Generate an exam with the LLM, without falling back.

    Raises:
        ExamGenerationError: On LLM failure or an unusable payload
    """
    subject = get_subject(subject_id)
    client = client or _default_client()

    try:
        payload = client.simple_json(
            system_prompt=get_prompt("exam/generate_system"),
            user_message=build_generation_prompt(subject),
            temperature=GENERATION_TEMPERATURE,
            max_tokens=GENERATION_MAX_TOKENS,
        )
    except LLMError as e:
        raise ExamGenerationError(str(e)) from e

    exam, warnings = parse_exam_payload(payload, subject)
    for warning in warnings:
        logger.warning("exam_payload_repaired", subject=subject.id, detail=warning)

    logger.info("exam_generated", subject=subject.id, questions=len(exam.questions))
    return exam, warnings


def generate_exam(subject_id: str, client: LLMClient | None = None) -> GenerationResult:
    """Generate an exam, falling back to the templated exam on any failure.

    Args:
        subject_id: Subject identifier, e.g. "bjc-math" (unknown ids get the
            generic practice exam settings)
        client: Optional pre-configured LLM client (for testing)

    Returns:
        GenerationResult; ``is_mock`` is set when the fallback was used
    """
    subject = get_subject(subject_id)
    client = client or _default_client()

    if not client.is_configured:
        logger.warning("exam_generation_not_configured", subject=subject.id)
        return GenerationResult(
            exam=build_fallback_exam(subject),
            is_mock=True,
            mock_message=MOCK_MESSAGE_NOT_CONFIGURED,
        )

    try:
        exam, warnings = request_exam(subject_id, client)
    except ExamGenerationError as e:
        logger.error("exam_generation_failed", subject=subject.id, error=str(e))
        return GenerationResult(
            exam=build_fallback_exam(subject),
            is_mock=True,
            mock_message=MOCK_MESSAGE_FAILED,
        )

    return GenerationResult(exam=exam, warnings=warnings)
