import pytest

from conftest import make_grades, make_submission

from cqbot.core.models import Grade
from cqbot.core.services.grade_summary import level_for_percentage, score_band, summarize_grades


@pytest.mark.parametrize(
    ("percentage", "level"),
    [(100, "Excellent"), (80, "Excellent"), (79, "Good"), (60, "Good"), (59, "Needs Improvement"), (40, "Needs Improvement"), (39, "Insufficient"), (0, "Insufficient")],
)
def test_level_buckets(percentage, level):
    assert level_for_percentage(percentage) == level


def test_score_bands():
    assert score_band(5) == "high"
    assert score_band(4) == "high"
    assert score_band(3) == "mid"
    assert score_band(2) == "low"


def test_summary_totals_and_pairing():
    submission = make_submission(3)
    grades = [
        Grade(answer_id="a1", score=5, rationale="", confidence=0.9),
        Grade(answer_id="a2", score=3, rationale="", confidence=0.8),
        Grade(answer_id="a3", score=2, rationale="", confidence=0.7),
    ]

    summary = summarize_grades(grades, submission.questions, {"q1": "one", "q2": "two", "q3": "three"})

    assert summary.total_score == 10
    assert summary.max_score == 15
    assert summary.percentage == 67
    assert summary.average_confidence == 80
    assert summary.level == "Good"
    assert [item.score_band for item in summary.items] == ["high", "mid", "low"]
    assert summary.items[1].answer_text == "two"


def test_half_percent_rounds_up():
    # 1 of 40 points is 2.5%
    grades = [Grade(answer_id="a1", score=1, rationale="", confidence=0.005)] + [
        Grade(answer_id=f"b{index}", score=0, rationale="", confidence=0.005) for index in range(7)
    ]
    assert summarize_grades(grades).percentage == 3


def test_empty_grades_rejected():
    with pytest.raises(ValueError):
        summarize_grades([])


def test_missing_grade_leaves_item_ungraded():
    summary = summarize_grades(make_grades(1), make_submission(2).questions)
    assert summary.items[1].grade is None
    assert summary.items[1].score_band is None
