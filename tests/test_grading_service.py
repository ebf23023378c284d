"""Tests for grading and review construction."""

import pytest

from lms_quiz.models.question_model import Question
from lms_quiz.services.grading_service import build_review_items, grade_attempt, is_correct, is_passed


class TestIsCorrect:
    """Test per-type correctness checks."""

    def test_fill_blank_trims_and_ignores_case_by_default(self):
        q = Question(id="f", type="fill_blank", prompt="?", correct_answer="PUT")
        assert is_correct(q, "  put ")
        assert not is_correct(q, "post")

    def test_fill_blank_case_sensitive_option(self):
        q = Question(id="f", type="fill_blank", prompt="?", correct_answer="PUT")
        assert not is_correct(q, "put", case_sensitive=True)
        assert is_correct(q, " PUT", case_sensitive=True)

    def test_multi_choice_is_exact_set_match(self, all_type_questions):
        multi = all_type_questions[1]
        assert is_correct(multi, [1, 0])
        assert not is_correct(multi, [0])
        assert not is_correct(multi, [0, 1, 2])

    def test_wire_shaped_mapping_answers(self, all_type_questions):
        match, order = all_type_questions[5], all_type_questions[6]
        assert is_correct(match, {"0": 0, "1": 1})
        assert is_correct(order, {"0": 1, "1": 2, "2": 3})
        assert not is_correct(order, {"0": 2, "1": 1, "2": 3})

    def test_essay_is_not_auto_graded(self, all_type_questions):
        assert is_correct(all_type_questions[4], "anything") is None

    def test_malformed_answer_is_wrong(self, all_type_questions):
        assert is_correct(all_type_questions[0], "a") is False


class TestGradeAttempt:
    def test_scores_and_essay_points_in_total(self, all_type_questions):
        answers = {
            "single": 0,
            "multi": [0, 1],
            "tf": 0,
            "fill": "Word",
            "essay": "long text",
            "match": {"0": 0, "1": 1},
        }
        summary = grade_attempt("att-1", all_type_questions, answers)
        assert summary.possible_points == 9
        assert summary.earned_points == 4
        assert summary.percentage == pytest.approx(44.44)
        assert summary.passed is False
        by_id = {r.question_id: r for r in summary.results}
        assert by_id["tf"].is_correct is False
        assert by_id["order"].is_correct is False
        assert by_id["essay"].is_correct is None

    def test_empty_quiz_scores_zero(self):
        summary = grade_attempt("att-1", [], {})
        assert summary.percentage == 0.0

    def test_passing_score_threshold(self, scenario_questions):
        summary = grade_attempt("att-1", scenario_questions, {"q1": 1, "q3": [0, 2]}, passing_score=60)
        assert summary.percentage == pytest.approx(66.67)
        assert summary.passed is True


class TestReview:
    def test_review_items_include_answers_in_order(self, scenario_questions):
        answers = {"q1": 2, "q3": [2, 0]}
        summary = grade_attempt("att-1", scenario_questions, answers)
        items = build_review_items(scenario_questions, answers, summary)
        assert [i.question_id for i in items] == ["q1", "q2", "q3"]
        assert items[0].correct_answer == 1
        assert items[0].is_correct is False
        assert items[1].user_answer is None
        assert items[2].correct_answer == [0, 2]
        assert items[2].is_correct is True


def test_is_passed_boundary():
    assert is_passed(70.0)
    assert not is_passed(69.99)
