"""
Unit tests for the scorer.

Covers totals over assigned questions, rounding and the no-questions case.
"""

from decimal import Decimal

from src.exam.models import Answer
from src.exam.scorer import calculate_percentage, score_answers


def _answer(question_id, option):
    return Answer(session_id=1, question_id=question_id, selected_option=option)


class TestScoreAnswers:
    def test_unanswered_questions_count_toward_total(self):
        """4 assigned, 3 correct, 1 unanswered -> 3/4 = 75.00."""
        correct = {1: "A", 2: "B", 3: "C", 4: "D"}
        answers = [_answer(1, "A"), _answer(2, "B"), _answer(3, "C")]

        result = score_answers(answers, correct, [1, 2, 3, 4])

        assert result.score == 3
        assert result.total == 4
        assert result.percentage == Decimal("75.00")
        assert result.has_questions is True

    def test_zero_answers_scores_zero(self):
        result = score_answers([], {1: "A", 2: "B"}, [1, 2])

        assert result.score == 0
        assert result.total == 2
        assert result.percentage == Decimal("0.00")
        assert result.correctness == {}

    def test_no_assigned_questions_is_distinguished(self):
        """Total of zero reports None, not a division result."""
        result = score_answers([], {}, [])

        assert result.total == 0
        assert result.percentage is None
        assert result.has_questions is False

    def test_wrong_and_cleared_answers_are_incorrect(self):
        answers = [_answer(1, "B"), _answer(2, None)]
        result = score_answers(answers, {1: "A", 2: "A"}, [1, 2])

        assert result.score == 0
        assert result.correctness == {1: False, 2: False}

    def test_answers_outside_assignment_are_ignored(self):
        answers = [_answer(1, "A"), _answer(99, "A")]
        result = score_answers(answers, {1: "A", 99: "A"}, [1])

        assert result.score == 1
        assert result.total == 1
        assert 99 not in result.correctness

    def test_option_comparison_is_case_insensitive(self):
        result = score_answers([_answer(1, "c")], {1: "C"}, [1])
        assert result.score == 1


class TestCalculatePercentage:
    def test_rounds_half_up_to_two_places(self):
        assert calculate_percentage(1, 3) == Decimal("33.33")
        assert calculate_percentage(2, 3) == Decimal("66.67")
        assert calculate_percentage(1, 8) == Decimal("12.50")

    def test_full_marks(self):
        assert calculate_percentage(5, 5) == Decimal("100.00")

    def test_zero_total(self):
        assert calculate_percentage(0, 0) is None
