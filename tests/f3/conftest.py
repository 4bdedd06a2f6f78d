"""Fixtures for F3 tests - exams, tutor and progress."""

import pytest

from tutoring.core.exam_models import Exam, ExamQuestion


@pytest.fixture
def small_exam() -> Exam:
    """Exam with 2 MC (4 pts) and 1 SA (8 pts), 1 minute long."""
    return Exam(
        title="BJC Mathematics Practice Exam",
        duration=1,
        questions=[
            ExamQuestion(1, "multiple-choice", "What is 2 + 2?", "4", 4, ["3", "4", "5", "6"]),
            ExamQuestion(2, "multiple-choice", "What is 10% of 50?", "5", 4, ["5", "10", "15", "50"]),
            ExamQuestion(3, "short-answer", "Explain how to solve 2x + 3 = 7.", "x = 2", 8),
        ],
    )
