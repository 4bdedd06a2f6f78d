"""Tests for prompt registry."""

import pytest

from tutoring.prompts.registry import get_prompt, has_prompt, list_prompts


class TestGetPrompt:
    def test_tutor_base_exists(self):
        prompt = get_prompt("tutor/base")
        assert len(prompt) > 100

    def test_variables_substituted(self):
        prompt = get_prompt(
            "exam/grade",
            title="BJC Mathematics Practice Exam",
            question_count=2,
            total_points=8,
            question_lines="Q1(4pts): ...",
        )

        assert "BJC Mathematics Practice Exam" in prompt
        assert "{title}" not in prompt
        assert "{question_lines}" not in prompt

    def test_json_example_braces_survive(self):
        prompt = get_prompt(
            "exam/grade",
            title="T",
            question_count=1,
            total_points=4,
            question_lines="Q1",
        )
        assert '"questionResults"' in prompt
        assert "{\n" in prompt

    def test_missing_prompt_raises(self):
        with pytest.raises(FileNotFoundError):
            get_prompt("nope/missing")


class TestListPrompts:
    def test_lists_tutor_and_exam_prompts(self):
        keys = list_prompts()

        assert "tutor/base" in keys
        assert "tutor/math" in keys
        assert "tutor/science" in keys
        assert "exam/generate" in keys
        assert "exam/subjects/bjc-math" in keys

    def test_every_subject_has_instructions(self):
        for subject_id in (
            "bjc-math",
            "bjc-general-science",
            "bjc-health-science",
            "bgcse-math",
            "bgcse-chemistry",
            "bgcse-physics",
            "bgcse-biology",
            "bgcse-combined-science",
        ):
            assert has_prompt(f"exam/subjects/{subject_id}")
