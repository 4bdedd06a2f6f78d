"""Exam attempt state machine.

One ExamSession drives a single practice exam attempt through:

    not_generated -> ready_to_start -> in_progress -> grading -> completed
                \\-> error (generation)              (grading failure falls
                                                     back to local grading)

The caller owns the clock: it calls ``tick()`` once per second while the
attempt is in progress. Persistence is a side effect of transitions: every
change while in progress or grading writes a snapshot to the configured
SnapshotStore, and terminal transitions clear it, so ``ExamSession.restore``
can resume an attempt after a reload.
"""

from __future__ import annotations

import json
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from tutoring.config.subjects import get_subject
from tutoring.core.exam_generator import build_fallback_exam
from tutoring.core.exam_grader import MOCK_MESSAGE_FAILED, GradingResult, grade_locally
from tutoring.core.exam_models import Exam
from tutoring.utils.text_utils import round_half_up

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_GENERATION_ATTEMPTS = 3

NAVIGATION_WARNING = (
    "If you leave this page, your exam progress will be lost. Are you sure you want to exit?"
)

SNAPSHOT_SCHEMA = "exam_attempt_snapshot_v1"
DEFAULT_SNAPSHOT_DIR = Path("data/state/exam_attempts")

# Synthetic progress while waiting on generation/grading
PROGRESS_MIN_STEP = 5
PROGRESS_MAX_STEP = 20
PROGRESS_CAP = 90


class ExamState(str, Enum):
    NOT_GENERATED = "not_generated"
    READY_TO_START = "ready_to_start"
    IN_PROGRESS = "in_progress"
    GRADING = "grading"
    COMPLETED = "completed"
    ERROR = "error"


# =============================================================================
# ERRORS
# =============================================================================


class ExamSessionError(Exception):
    """Base error for exam attempt operations."""

    pass


class InvalidTransitionError(ExamSessionError):
    """Operation not allowed in the current state."""

    def __init__(self, operation: str, state: ExamState):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while exam is {state.value}")


class AnswerLockedError(ExamSessionError):
    """Answers can no longer change (time expired or submission in flight)."""

    pass


class IncompleteExamError(ExamSessionError):
    """Explicit submit with unanswered questions."""

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(
            f"Please answer all questions before submitting. {remaining} questions remaining."
        )


class UnknownQuestionError(ExamSessionError):
    """Answer for a question id that is not in the exam."""

    pass


# =============================================================================
# SYNTHETIC PROGRESS
# =============================================================================


class GradingProgress:
    """Perceived-progress indicator for slow generation/grading calls.

    Each ``step()`` adds a random 5-20 points, never passing 90 until
    ``complete()`` is called. Not tied to real work.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()
        self.value: float = 0
        self.done = False

    def step(self) -> float:
        if self.done or self.value >= PROGRESS_CAP:
            return self.value
        increment = self._rng.uniform(PROGRESS_MIN_STEP, PROGRESS_MAX_STEP)
        self.value = min(PROGRESS_CAP, self.value + increment)
        return self.value

    def complete(self) -> float:
        self.done = True
        self.value = 100
        return self.value

    @property
    def label(self) -> str:
        if self.value >= 100:
            return "Done!"
        if self.value >= 60:
            return "Finalizing..."
        if self.value >= 30:
            return "Working on it..."
        return "Starting..."


# =============================================================================
# SNAPSHOT STORES
# =============================================================================


class SnapshotStore:
    """Persistence for in-flight attempts, keyed by subject and attempt id."""

    def save(self, snapshot: dict[str, Any]) -> None:
        raise NotImplementedError

    def load(self, subject: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def clear(self, subject: str, attempt_id: str) -> None:
        raise NotImplementedError


class InMemorySnapshotStore(SnapshotStore):
    """Process-local store; nothing survives the process."""

    def __init__(self):
        self._snapshots: dict[str, dict[str, Any]] = {}

    def save(self, snapshot: dict[str, Any]) -> None:
        self._snapshots[snapshot["subject"]] = json.loads(json.dumps(snapshot))

    def load(self, subject: str) -> dict[str, Any] | None:
        snapshot = self._snapshots.get(subject)
        return json.loads(json.dumps(snapshot)) if snapshot is not None else None

    def clear(self, subject: str, attempt_id: str) -> None:
        current = self._snapshots.get(subject)
        if current is not None and current.get("attempt_id") == attempt_id:
            del self._snapshots[subject]


class JsonFileSnapshotStore(SnapshotStore):
    """One JSON file per subject under data/state/exam_attempts/."""

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir or DEFAULT_SNAPSHOT_DIR

    def _path(self, subject: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in subject)
        return self.base_dir / f"{safe}.json"

    def save(self, snapshot: dict[str, Any]) -> None:
        path = self._path(snapshot["subject"])
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {"$schema": SNAPSHOT_SCHEMA, **snapshot}
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)

    def load(self, subject: str) -> dict[str, Any] | None:
        path = self._path(subject)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("exam_snapshot_unreadable", path=str(path), error=str(e))
            return None
        if data.pop("$schema", None) != SNAPSHOT_SCHEMA:
            logger.warning("exam_snapshot_schema_mismatch", path=str(path))
            return None
        return data

    def clear(self, subject: str, attempt_id: str) -> None:
        path = self._path(subject)
        current = self.load(subject)
        if current is not None and current.get("attempt_id") == attempt_id:
            path.unlink(missing_ok=True)


# =============================================================================
# SESSION
# =============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExamSession:
    """State machine for one practice exam attempt."""

    subject: str
    store: SnapshotStore = field(default_factory=InMemorySnapshotStore)
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: ExamState = ExamState.NOT_GENERATED
    exam: Exam | None = None
    is_fallback_exam: bool = False
    generation_attempts: int = 0
    error_reason: str | None = None
    answers: dict[str, str] = field(default_factory=dict)
    current_index: int = 0
    remaining_seconds: int = 0
    started_at: datetime | None = None
    deadline: datetime | None = None
    submitted_at: datetime | None = None
    time_expired: bool = False
    result: GradingResult | None = None
    progress: GradingProgress | None = None

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def load_exam(self, exam: Exam) -> None:
        """Generation succeeded: not_generated|error -> ready_to_start."""
        self._require({ExamState.NOT_GENERATED, ExamState.ERROR}, "load exam")
        self.exam = exam
        self.error_reason = None
        self.answers = {}
        self.current_index = 0
        self.remaining_seconds = exam.duration * 60
        self.state = ExamState.READY_TO_START
        logger.info("exam_attempt_ready", subject=self.subject, attempt_id=self.attempt_id)

    def generation_failed(self, reason: str) -> None:
        """Generation failed: not_generated|error -> error."""
        self._require({ExamState.NOT_GENERATED, ExamState.ERROR}, "record generation failure")
        self.generation_attempts += 1
        self.error_reason = reason
        self.state = ExamState.ERROR
        logger.warning(
            "exam_attempt_generation_failed",
            subject=self.subject,
            attempts=self.generation_attempts,
            reason=reason,
        )

    @property
    def fallback_due(self) -> bool:
        """True once retrying will load the templated exam."""
        return self.generation_attempts >= MAX_GENERATION_ATTEMPTS

    def retry(self) -> ExamState:
        """Leave the error state.

        Below MAX_GENERATION_ATTEMPTS failures the session returns to
        not_generated for another generation request; after that the
        deterministic fallback exam is loaded.
        """
        self._require({ExamState.ERROR}, "retry")
        if self.fallback_due:
            self.load_exam(build_fallback_exam(get_subject(self.subject)))
            self.is_fallback_exam = True
        else:
            self.state = ExamState.NOT_GENERATED
        return self.state

    # -------------------------------------------------------------------------
    # Attempt
    # -------------------------------------------------------------------------

    def start(self, now: datetime | None = None) -> None:
        """ready_to_start -> in_progress; stamps the deadline."""
        self._require({ExamState.READY_TO_START}, "start")
        now = now or _utcnow()
        self.started_at = now
        self.remaining_seconds = self.exam.duration * 60
        self.deadline = now + timedelta(seconds=self.remaining_seconds)
        self.state = ExamState.IN_PROGRESS
        logger.info(
            "exam_attempt_started",
            subject=self.subject,
            attempt_id=self.attempt_id,
            duration_minutes=self.exam.duration,
        )
        self._persist()

    def tick(self) -> bool:
        """Advance the countdown by one second.

        Returns:
            True if this tick expired the time and auto-submitted the exam.
        """
        if self.state != ExamState.IN_PROGRESS:
            return False

        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        if self.remaining_seconds == 0:
            self.time_expired = True
            logger.info("exam_attempt_time_expired", attempt_id=self.attempt_id)
            self._begin_grading()
            return True

        self._persist()
        return False

    def answer(self, question_id: int | str, value: str) -> None:
        """Record an answer.

        Raises:
            AnswerLockedError: Outside in_progress (expired or submitted)
            UnknownQuestionError: If the question is not in the exam
        """
        if self.state != ExamState.IN_PROGRESS:
            raise AnswerLockedError(f"Answers are locked while exam is {self.state.value}")
        if self.exam.get_question(question_id) is None:
            raise UnknownQuestionError(f"Question {question_id} is not part of this exam")

        self.answers[str(question_id)] = value
        self._persist()

    def go_to(self, index: int) -> None:
        """Move to a question by position."""
        self._require({ExamState.IN_PROGRESS}, "navigate")
        self.current_index = max(0, min(index, len(self.exam.questions) - 1))
        self._persist()

    @property
    def unanswered(self) -> list[int]:
        if self.exam is None:
            return []
        return [q.id for q in self.exam.questions if not self.answers.get(str(q.id), "").strip()]

    @property
    def answered_count(self) -> int:
        if self.exam is None:
            return 0
        return len(self.exam.questions) - len(self.unanswered)

    @property
    def completion_percentage(self) -> float:
        if not self.exam or not self.exam.questions:
            return 0
        return self.answered_count / len(self.exam.questions) * 100

    def submit(self) -> None:
        """Explicit submit: in_progress -> grading.

        Raises:
            InvalidTransitionError: If not in progress (prevents double submit)
            IncompleteExamError: If any question is unanswered
        """
        self._require({ExamState.IN_PROGRESS}, "submit")
        remaining = len(self.unanswered)
        if remaining:
            raise IncompleteExamError(remaining)
        self._begin_grading()

    def _begin_grading(self) -> None:
        self.submitted_at = _utcnow()
        self.state = ExamState.GRADING
        self.progress = GradingProgress()
        logger.info(
            "exam_attempt_submitted",
            attempt_id=self.attempt_id,
            time_expired=self.time_expired,
            answered=self.answered_count,
        )
        self._persist()

    # -------------------------------------------------------------------------
    # Grading
    # -------------------------------------------------------------------------

    def grading_succeeded(self, result: GradingResult) -> None:
        """grading -> completed."""
        self._require({ExamState.GRADING}, "complete grading")
        self._complete(result)

    def grading_failed(self, reason: str) -> None:
        """Grading call failed: grade locally and still complete."""
        self._require({ExamState.GRADING}, "record grading failure")
        logger.warning("exam_attempt_grading_failed", attempt_id=self.attempt_id, reason=reason)
        result = grade_locally(self.exam, self.answers)
        result.is_mock = True
        result.mock_message = MOCK_MESSAGE_FAILED
        self._complete(result)

    def _complete(self, result: GradingResult) -> None:
        self.result = result
        if self.progress is not None:
            self.progress.complete()
        self.state = ExamState.COMPLETED
        self.store.clear(self.subject, self.attempt_id)
        logger.info(
            "exam_attempt_completed",
            attempt_id=self.attempt_id,
            percentage=result.percentage,
            is_mock=result.is_mock,
        )

    @property
    def time_spent_minutes(self) -> int:
        if self.exam is None:
            return 0
        return round_half_up((self.exam.duration * 60 - self.remaining_seconds) / 60)

    def result_payload(self) -> dict[str, Any]:
        """Body for saving the completed attempt as an exam result."""
        self._require({ExamState.COMPLETED}, "build result")
        graded = self.result.to_dict()
        return {
            "subject": self.subject,
            "score": graded["totalScore"],
            "maxScore": graded["maxScore"],
            "percentage": graded["percentage"],
            "totalQuestions": len(self.exam.questions),
            "timeSpent": self.time_spent_minutes,
            "answers": {
                "exam": self.exam.to_dict(),
                "answers": dict(self.answers),
                "questionResults": graded["questionResults"],
            },
            "feedback": graded["feedback"],
        }

    # -------------------------------------------------------------------------
    # Navigation guard
    # -------------------------------------------------------------------------

    @property
    def blocks_navigation(self) -> bool:
        return self.state == ExamState.IN_PROGRESS

    def confirm_abandon(self) -> None:
        """Discard the attempt after the user confirmed leaving."""
        if self.state != ExamState.IN_PROGRESS:
            return
        logger.info("exam_attempt_abandoned", attempt_id=self.attempt_id)
        self.store.clear(self.subject, self.attempt_id)
        self.state = ExamState.NOT_GENERATED
        self.exam = None
        self.answers = {}
        self.current_index = 0
        self.remaining_seconds = 0
        self.started_at = None
        self.deadline = None

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "subject": self.subject,
            "state": self.state.value,
            "remaining_seconds": self.remaining_seconds,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "current_index": self.current_index,
            "answers": dict(self.answers),
            "time_expired": self.time_expired,
            "exam": self.exam.to_dict() if self.exam else None,
        }

    def _persist(self) -> None:
        if self.state in (ExamState.IN_PROGRESS, ExamState.GRADING):
            self.store.save(self.snapshot())

    @classmethod
    def restore(
        cls,
        subject: str,
        store: SnapshotStore,
        now: datetime | None = None,
    ) -> ExamSession | None:
        """Rebuild an unfinished attempt from its latest snapshot.

        Remaining time is recomputed from the stored deadline; an attempt
        whose deadline passed while away is auto-submitted on restore.
        """
        data = store.load(subject)
        if not data or not data.get("exam"):
            return None

        state = ExamState(data["state"])
        if state not in (ExamState.IN_PROGRESS, ExamState.GRADING):
            return None

        session = cls(
            subject=subject,
            store=store,
            attempt_id=data["attempt_id"],
            state=state,
            exam=Exam.from_dict(data["exam"]),
            answers={str(k): v for k, v in data.get("answers", {}).items()},
            current_index=data.get("current_index", 0),
            remaining_seconds=data.get("remaining_seconds", 0),
            started_at=datetime.fromisoformat(data["started_at"]) if data.get("started_at") else None,
            deadline=datetime.fromisoformat(data["deadline"]) if data.get("deadline") else None,
            time_expired=data.get("time_expired", False),
        )

        if state == ExamState.GRADING:
            session.progress = GradingProgress()
        elif session.deadline is not None:
            now = now or _utcnow()
            left = int((session.deadline - now).total_seconds())
            session.remaining_seconds = max(0, min(session.remaining_seconds, left))
            if session.remaining_seconds == 0:
                session.time_expired = True
                session._begin_grading()

        logger.info("exam_attempt_restored", attempt_id=session.attempt_id, state=session.state.value)
        return session

    # -------------------------------------------------------------------------

    def _require(self, allowed: set[ExamState], operation: str) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(operation, self.state)
