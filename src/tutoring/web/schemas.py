"""Pydantic schemas for the Web API.

Request bodies use the camelCase field names of the browser client. Required
fields are optional here when the handler reports their absence with its own
message (e.g. "Email and password are required").
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class _Body(BaseModel):
    model_config = ConfigDict(extra="ignore")


# =============================================================================
# HEALTH / SUBJECTS
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str
    version: str
    timestamp: str
    database: bool
    llm: bool | None = None


class SubjectResponse(BaseModel):
    """One practice exam subject."""

    id: str
    title: str
    displayName: str
    level: str
    topics: str
    duration: int
    multipleChoiceQuestions: int
    shortAnswerQuestions: int
    totalQuestions: int
    totalPoints: float
    description: str = ""


class SubjectListResponse(BaseModel):
    subjects: list[SubjectResponse]
    count: int


# =============================================================================
# AUTH / PROFILE
# =============================================================================


class SignupRequest(_Body):
    """Request body for signup."""

    email: EmailStr | None = None
    password: str | None = None
    firstName: str | None = Field(default=None, max_length=100)
    lastName: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=40)
    gradeLevel: str | None = Field(default=None, max_length=40)
    school: str | None = Field(default=None, max_length=200)


class LoginRequest(_Body):
    email: str | None = None
    password: str | None = None


class ProfileUpdateRequest(_Body):
    """Profile fields a user may edit; omitted fields are left unchanged."""

    firstName: str | None = None
    lastName: str | None = None
    phone: str | None = None
    gradeLevel: str | None = None
    school: str | None = None
    avatar: str | None = None
    fullImage: str | None = None


# Request field -> users column
PROFILE_FIELD_MAP = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "gradeLevel": "grade_level",
    "school": "school",
    "avatar": "avatar",
    "fullImage": "full_image",
}


# =============================================================================
# CHAT
# =============================================================================


class ChatSessionSaveRequest(_Body):
    """Create-or-update body for a chat session."""

    id: str | None = None
    subject: str | None = None
    topic: str | None = None
    title: str | None = None
    lastMessage: str | None = None
    messages: list[dict[str, Any]] | None = None


class ChatRequest(_Body):
    messages: list[dict[str, Any]] = Field(default_factory=list)
    subject: str | None = None


# =============================================================================
# EXAMS
# =============================================================================


class GenerateExamRequest(_Body):
    subject: str | None = None


class GradeExamRequest(_Body):
    examData: dict[str, Any] | None = None
    answers: dict[str, Any] | None = None


class ExamResultCreateRequest(_Body):
    """Body for saving a completed attempt."""

    subject: str = Field(..., min_length=1)
    score: float = Field(..., ge=0, allow_inf_nan=False)
    maxScore: float = Field(..., ge=0, allow_inf_nan=False)
    # Informational; the stored percentage is derived from score and maxScore
    percentage: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    totalQuestions: int = Field(..., ge=0)
    timeSpent: int = Field(default=0, ge=0)
    answers: dict[str, Any] | None = None
    feedback: str | None = None
