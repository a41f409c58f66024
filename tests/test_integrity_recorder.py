import pytest

from cqbot.core.errors import UnknownQuestionError
from cqbot.core.services.integrity_recorder import IntegrityRecorder


@pytest.fixture
def recorder(clock):
    recorder = IntegrityRecorder(clock)
    recorder.start(["q1", "q2"])
    return recorder


def test_start_seeds_zeroed_state_for_exact_ids(recorder):
    states = recorder.states()
    assert [state.question_id for state in states] == ["q1", "q2"]
    assert all(state.paste_attempts == 0 for state in states)
    assert all(state.time_spent_ms == 0 for state in states)
    assert all(not state.timer_running for state in states)
    assert recorder.focus_loss_count == 0


def test_focus_then_blur_accumulates_time(recorder, clock):
    recorder.question_focused("q1")
    clock.advance(1500)
    recorder.question_blurred("q1")
    recorder.question_focused("q1")
    clock.advance(500)
    recorder.question_blurred("q1")

    assert recorder.time_spent() == {"q1": 2000, "q2": 0}


def test_repeated_focus_keeps_original_start(recorder, clock):
    assert recorder.question_focused("q1") is True
    clock.advance(300)
    assert recorder.question_focused("q1") is False
    clock.advance(700)
    recorder.question_blurred("q1")

    assert recorder.time_spent()["q1"] == 1000


def test_blur_without_focus_is_noop(recorder):
    assert recorder.question_blurred("q2") is False
    assert recorder.time_spent()["q2"] == 0


def test_effective_time_reads_running_timers_without_closing_them(recorder, clock):
    recorder.question_focused("q1")
    clock.advance(400)
    recorder.question_blurred("q1")
    recorder.question_focused("q1")
    clock.advance(250)

    first = recorder.effective_time_spent()
    second = recorder.effective_time_spent()

    assert first == second == {"q1": 650, "q2": 0}
    assert recorder.state("q1").timer_running
    assert recorder.time_spent()["q1"] == 400


def test_paste_and_focus_loss_counters(recorder):
    recorder.record_paste("q2")
    recorder.record_paste("q2")
    recorder.record_focus_loss()

    assert recorder.state("q2").paste_attempts == 2
    assert recorder.state("q1").paste_attempts == 0
    assert recorder.focus_loss_count == 1


def test_merge_time_spent_never_lowers_and_ignores_unknown_ids(recorder, clock):
    recorder.question_focused("q1")
    clock.advance(900)
    recorder.question_blurred("q1")

    recorder.merge_time_spent({"q1": 100, "q2": 5000, "ghost": 42})

    assert recorder.time_spent() == {"q1": 900, "q2": 5000}


def test_unknown_question_raises(recorder):
    with pytest.raises(UnknownQuestionError):
        recorder.record_paste("nope")
