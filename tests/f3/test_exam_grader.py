"""Tests for exam grading (LLM and local fallback)."""

import pytest

from tutoring.core.exam_grader import (
    FEEDBACK_CORRECT,
    MOCK_MESSAGE_FAILED,
    MOCK_MESSAGE_NOT_CONFIGURED,
    MOCK_MESSAGE_TIMEOUT,
    NO_ANSWER,
    ExamGradingError,
    build_grading_prompt,
    compute_percentage,
    grade_exam,
    grade_locally,
    reconcile_grading,
)
from tutoring.core.exam_models import ExamQuestion
from tutoring.llm.client import LLMResponseError, LLMTimeoutError


class TestComputePercentage:
    @pytest.mark.parametrize(
        "total,max_score,expected",
        [(60, 80, 75), (1, 3, 33), (2, 3, 67), (7, 8, 88), (0, 80, 0), (5, 0, 0)],
    )
    def test_rounding(self, total, max_score, expected):
        assert compute_percentage(total, max_score) == expected


class TestGradeLocally:
    def test_all_correct(self, small_exam):
        result = grade_locally(small_exam, {"1": "4", "2": "5", "3": "Subtract three, then halve: x = 2"})

        assert result.total_score == 4 + 4 + 6
        assert result.max_score == 16
        assert result.percentage == 88

    def test_mc_case_insensitive_trimmed(self, small_exam):
        result = grade_locally(small_exam, {"1": " 4 "})
        assert result.question_results[0].is_correct

    def test_short_answer_credit_tiers(self, small_exam):
        long_answer = grade_locally(small_exam, {"3": "x equals two here"}).question_results[2]
        short_answer = grade_locally(small_exam, {"3": "x=2"}).question_results[2]
        empty = grade_locally(small_exam, {"3": "   "}).question_results[2]

        # 70% and 30% of 8, rounded half up
        assert long_answer.points_earned == 6
        assert long_answer.is_correct
        assert short_answer.points_earned == 2
        assert not short_answer.is_correct
        assert empty.points_earned == 0

    def test_exactly_ten_chars_is_minimal(self, small_exam):
        result = grade_locally(small_exam, {"3": "a" * 10})
        assert result.question_results[2].points_earned == 2

    def test_missing_answers(self, small_exam):
        result = grade_locally(small_exam, None)

        assert result.total_score == 0
        assert result.question_results[0].user_answer == NO_ANSWER

    def test_integer_keys_accepted(self, small_exam):
        assert grade_locally(small_exam, {1: "4"}).question_results[0].is_correct

    def test_feedback_bands(self, small_exam):
        high = grade_locally(small_exam, {"1": "4", "2": "5", "3": "a long enough answer"})
        low = grade_locally(small_exam, {})

        assert "Excellent" in high.feedback
        assert "Keep studying" in low.feedback


class TestReconcileGrading:
    def test_clamps_and_rederives(self, small_exam):
        payload = {
            "totalScore": 100,
            "percentage": 100,
            "feedback": "Well done",
            "questionResults": [
                {"questionId": 1, "isCorrect": True, "pointsEarned": 40, "feedback": "Yes"},
                {"questionId": 2, "isCorrect": False, "pointsEarned": -3},
                {"questionId": "3", "isCorrect": True, "pointsEarned": 5},
            ],
        }
        result = reconcile_grading(payload, small_exam, {"1": "4", "2": "10", "3": "x = 2"})

        assert [r.points_earned for r in result.question_results] == [4, 0, 5]
        assert result.total_score == 9
        assert result.percentage == 56
        assert result.feedback == "Well done"
        assert result.question_results[1].feedback != ""

    def test_skipped_question_graded_locally(self, small_exam):
        payload = {"questionResults": [{"questionId": 1, "isCorrect": True, "pointsEarned": 4}]}
        result = reconcile_grading(payload, small_exam, {"1": "4", "2": "5"})

        assert result.question_results[1].is_correct
        assert result.question_results[1].points_earned == 4

    def test_null_points_are_zero(self, small_exam):
        payload = {"questionResults": [{"questionId": 1, "pointsEarned": None}]}
        result = reconcile_grading(payload, small_exam, {})

        assert result.question_results[0].points_earned == 0

    def test_non_finite_points_earn_nothing(self, small_exam):
        payload = {
            "questionResults": [
                {"questionId": 1, "isCorrect": True, "pointsEarned": float("nan")},
                {"questionId": 2, "pointsEarned": float("inf")},
            ]
        }

        result = reconcile_grading(payload, small_exam, {})

        assert [q.points_earned for q in result.question_results[:2]] == [0, 0]
        assert result.total_score == 0

    def test_invalid_payload(self, small_exam):
        with pytest.raises(ExamGradingError):
            reconcile_grading({"questionResults": []}, small_exam, {})


class TestGradingPrompt:
    def test_one_line_per_question(self, small_exam):
        prompt = build_grading_prompt(small_exam, {"1": "4"})

        assert 'Q1(4pts): multiple-choice - "What is 2 + 2?" | Correct: "4" | Student: "4"' in prompt
        assert 'Student: "No answer"' in prompt


class TestGradeExam:
    def test_not_configured(self, small_exam, unconfigured_llm_client):
        result = grade_exam(small_exam, {"1": "4"}, client=unconfigured_llm_client)

        assert result.is_mock
        assert result.mock_message == MOCK_MESSAGE_NOT_CONFIGURED
        assert result.total_score == 4

    def test_llm_grading(self, small_exam, mock_llm_client):
        mock_llm_client.simple_json.return_value = {
            "questionResults": [
                {"questionId": 1, "isCorrect": True, "pointsEarned": 4},
                {"questionId": 2, "isCorrect": True, "pointsEarned": 4},
                {"questionId": 3, "isCorrect": True, "pointsEarned": 8},
            ]
        }
        result = grade_exam(small_exam, {"1": "4", "2": "5", "3": "x = 2"}, client=mock_llm_client)

        assert not result.is_mock
        assert result.percentage == 100
        assert result.question_results[0].feedback == FEEDBACK_CORRECT
        kwargs = mock_llm_client.simple_json.call_args.kwargs
        assert kwargs["timeout"] == 15
        assert kwargs["temperature"] == 0.1

    def test_timeout_falls_back(self, small_exam, mock_llm_client):
        mock_llm_client.simple_json.side_effect = LLMTimeoutError("slow")
        result = grade_exam(small_exam, {"1": "4"}, client=mock_llm_client)

        assert result.is_mock
        assert result.mock_message == MOCK_MESSAGE_TIMEOUT

    def test_bad_response_falls_back(self, small_exam, mock_llm_client):
        mock_llm_client.simple_json.side_effect = LLMResponseError("garbage")
        result = grade_exam(small_exam, {"1": "4"}, client=mock_llm_client)

        assert result.is_mock
        assert result.mock_message == MOCK_MESSAGE_FAILED
        assert result.total_score == 4

    def test_to_dict_shape(self, small_exam, unconfigured_llm_client):
        data = grade_exam(small_exam, {"1": "4"}, client=unconfigured_llm_client).to_dict()

        assert data["totalScore"] == 4
        assert data["maxScore"] == 16
        assert data["percentage"] == 25
        assert data["isMock"] is True
        assert data["questionResults"][0] == {
            "questionId": 1,
            "userAnswer": "4",
            "isCorrect": True,
            "pointsEarned": 4,
            "maxPoints": 4,
            "feedback": FEEDBACK_CORRECT,
            "correctAnswer": "4",
        }


class TestQuestionPoints:
    QUESTION = {"id": 1, "type": "multiple-choice", "question": "2 + 2?", "correctAnswer": "4"}

    @pytest.mark.parametrize("points", ["nan", "inf", float("-inf"), -1])
    def test_invalid_points_rejected(self, points):
        with pytest.raises(ValueError):
            ExamQuestion.from_dict(dict(self.QUESTION, points=points))

    def test_points_default_to_zero(self):
        assert ExamQuestion.from_dict(self.QUESTION).points == 0
