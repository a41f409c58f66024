"""Display metrics derived from a complete set of grades."""

from __future__ import annotations

from collections.abc import Sequence
import math

from cqbot.constants.workflow_constants import (
    LEVEL_FALLBACK,
    LEVEL_THRESHOLDS,
    MAX_SCORE_PER_QUESTION,
    SCORE_BAND_HIGH,
    SCORE_BAND_MID,
)
from cqbot.core.models import Grade, GradedQuestion, GradeSummary, Question


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def level_for_percentage(percentage: float) -> str:
    for lower_bound, label in LEVEL_THRESHOLDS:
        if percentage >= lower_bound:
            return label
    return LEVEL_FALLBACK


def score_band(score: float) -> str:
    if score >= SCORE_BAND_HIGH:
        return "high"
    if score >= SCORE_BAND_MID:
        return "mid"
    return "low"


def summarize_grades(
    grades: Sequence[Grade],
    questions: Sequence[Question] = (),
    answers: dict[str, str] | None = None,
) -> GradeSummary:
    """Compute totals, percentage, average confidence and level.

    Grades are paired with questions by position, as the grading service
    returns them in submission order.
    """
    if not grades:
        raise ValueError("Cannot summarize an empty grade list.")

    total_score = sum(grade.score for grade in grades)
    max_score = len(grades) * MAX_SCORE_PER_QUESTION
    percentage = _round_half_up(total_score / max_score * 100)
    average_confidence = _round_half_up(sum(grade.confidence for grade in grades) / len(grades) * 100)

    answers = answers or {}
    items = []
    for index, question in enumerate(questions):
        grade = grades[index] if index < len(grades) else None
        items.append(
            GradedQuestion(
                question=question,
                answer_text=answers.get(question.id, ""),
                grade=grade,
                score_band=score_band(grade.score) if grade is not None else None,
            )
        )

    return GradeSummary(
        total_score=total_score,
        max_score=max_score,
        percentage=percentage,
        average_confidence=average_confidence,
        level=level_for_percentage(percentage),
        items=tuple(items),
    )
