import asyncio

from conftest import make_grades

from cqbot.core.errors import ApiError
from cqbot.core.models import GradingStatus
from cqbot.core.services.grade_poller import GradePoller


def test_delivers_full_set_and_stops(fake_api, sleep):
    fake_api.grade_responses = [make_grades(2), make_grades(3), make_grades(3)]
    poller = GradePoller(fake_api, sleep=sleep)

    result = asyncio.run(poller.poll("sub-1", 3))

    assert result.status is GradingStatus.COMPLETE
    assert len(result.grades) == 3
    assert result.attempts == 2
    assert fake_api.calls.count("get_grades") == 2
    assert sleep.delays == [3.0, 2.0]


def test_transient_failure_is_retried(fake_api, sleep):
    fake_api.grade_responses = [ApiError("Bad Gateway", 502), make_grades(1)]
    poller = GradePoller(fake_api, sleep=sleep)

    result = asyncio.run(poller.poll("sub-1", 1))

    assert result.status is GradingStatus.COMPLETE
    assert result.attempts == 2


def test_exhausts_after_max_attempts(fake_api, sleep):
    poller = GradePoller(fake_api, sleep=sleep)

    result = asyncio.run(poller.poll("sub-1", 3))

    assert result.status is GradingStatus.EXHAUSTED
    assert result.grades == ()
    assert result.attempts == 60
    assert fake_api.calls.count("get_grades") == 60
    assert sleep.delays[0] == 3.0
    assert sleep.delays.count(2.0) == 59


def test_stale_submission_is_abandoned_before_any_query(fake_api, sleep):
    fake_api.grade_responses = [make_grades(3)]
    poller = GradePoller(fake_api, sleep=sleep)

    result = asyncio.run(poller.poll("sub-1", 3, is_current=lambda submission_id: False))

    assert result.status is GradingStatus.CANCELLED
    assert "get_grades" not in fake_api.calls


def test_result_arriving_after_staleness_is_dropped(fake_api, sleep):
    current = {"id": "sub-1"}

    async def get_grades(submission_id):
        fake_api.calls.append("get_grades")
        current["id"] = "sub-2"
        return make_grades(3)

    fake_api.get_grades = get_grades
    poller = GradePoller(fake_api, sleep=sleep)

    result = asyncio.run(poller.poll("sub-1", 3, is_current=lambda submission_id: submission_id == current["id"]))

    assert result.status is GradingStatus.CANCELLED
    assert result.grades == ()
