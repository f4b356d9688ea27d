"""
Scorer: compares saved answers with the answer key.

Pure function, no persistence. The engine stores whatever this returns.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal

from src.exam.models import Answer, ScoreResult

_TWO_PLACES = Decimal("0.01")


def calculate_percentage(score: int, total: int) -> Decimal | None:
    """Score as a percentage rounded to two places; None when there is nothing to score."""
    if total <= 0:
        return None
    return (Decimal(score) * 100 / Decimal(total)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def score_answers(
    answers: Iterable[Answer],
    correct_options: Mapping[int, str],
    assigned_question_ids: Iterable[int],
) -> ScoreResult:
    """
    Score a session.

    Args:
        answers: Saved answers for the session
        correct_options: question_id -> correct option letter
        assigned_question_ids: Every question assigned to the exam

    Returns:
        ScoreResult. ``total`` counts assigned questions, so unanswered
        questions lower the percentage. Answers to questions outside the
        assignment are ignored.
    """
    assigned = set(assigned_question_ids)
    correctness: dict[int, bool] = {}

    for answer in answers:
        if answer.question_id not in assigned:
            continue
        expected = correct_options.get(answer.question_id)
        selected = answer.selected_option
        correctness[answer.question_id] = (
            selected is not None
            and expected is not None
            and selected.upper() == expected.upper()
        )

    score = sum(1 for ok in correctness.values() if ok)
    total = len(assigned)
    return ScoreResult(
        score=score,
        total=total,
        percentage=calculate_percentage(score, total),
        correctness=correctness,
    )
