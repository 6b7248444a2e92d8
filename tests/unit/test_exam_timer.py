import pytest

from core.events import TIMER_FINISHED, TIMER_SYNCED, TIMER_UPDATE
from core.timing.exam_timer import ExamTimer, TimerSession


@pytest.fixture
def timer(recorder, settings, clock, scheduler_factory):
    return ExamTimer(recorder, settings=settings, clock=clock, scheduler_factory=scheduler_factory)


def test_status_right_after_start(timer):
    timer.start(120)
    assert timer.status() == {"timeRemaining": 120, "elapsed": 0, "paused": False, "drift": 0.0}


def test_status_before_start_is_zero_snapshot(timer):
    assert timer.status() == {"timeRemaining": 0, "elapsed": 0, "paused": True, "drift": 0.0}


def test_start_computes_end_time_from_clock(timer, clock):
    session = timer.start(90, test_id="t1")
    assert session.start_time == clock.now
    assert session.end_time == clock.now + 90_000
    assert session.test_id == "t1"


def test_start_respects_given_timestamps(timer, clock):
    start = clock.now - 30_000
    session = timer.start(60, start_time=start, end_time=start + 60_000)
    assert session.start_time == start
    assert timer.status()["timeRemaining"] == 30


def test_tick_emits_update_derived_from_timestamps(timer, clock, schedulers, recorder):
    timer.start(120, test_id="t1")
    clock.advance(10.5)
    assert schedulers[0].fire() is True
    assert recorder.of(TIMER_UPDATE) == [{"timeRemaining": 110, "elapsed": 10, "testId": "t1"}]


def test_runs_to_finish(timer, clock, schedulers, recorder):
    timer.start(3, test_id="t1")
    for _ in range(3):
        clock.advance(1)
        schedulers[0].fire()
    assert recorder.types()[-2:] == [TIMER_UPDATE, TIMER_FINISHED]
    assert recorder.of(TIMER_UPDATE)[-1]["timeRemaining"] == 0
    assert recorder.of(TIMER_FINISHED) == [{"testId": "t1"}]
    assert schedulers[0].done
    assert not timer.running


def test_last_event_after_deadline_is_finished(timer, clock, schedulers, recorder):
    timer.start(120)
    clock.advance(121)
    assert schedulers[0].fire() is False
    assert recorder.types()[-1] == TIMER_FINISHED
    # further ticks from a stale loop emit nothing
    assert timer.tick() is False
    assert recorder.types().count(TIMER_FINISHED) == 1


def test_remaining_never_negative(timer, clock):
    timer.start(5)
    clock.advance(500)
    assert timer.status()["timeRemaining"] == 0


@pytest.mark.parametrize("duration", [0, -5])
def test_non_positive_duration_finishes_immediately(timer, schedulers, recorder, duration):
    timer.start(duration, test_id="t0")
    assert recorder.items == [(TIMER_FINISHED, {"testId": "t0"})]
    assert schedulers == []


def test_pause_halts_loop_and_keeps_start(timer, clock, schedulers):
    session = timer.start(120)
    start = session.start_time
    timer.pause()
    assert schedulers[0].cancelled
    assert timer.session.paused is True
    assert timer.session.start_time == start
    assert timer.status()["paused"] is True


def test_paused_time_is_not_given_back(timer, clock, schedulers, recorder):
    timer.start(120)
    timer.pause()
    clock.advance(10)
    assert timer.status()["timeRemaining"] == 110
    timer.resume()
    assert len(schedulers) == 2
    schedulers[1].fire()
    assert recorder.of(TIMER_UPDATE)[-1]["timeRemaining"] == 110


def test_stale_loop_cannot_tick_after_pause(timer, schedulers, recorder):
    timer.start(120)
    timer.pause()
    assert schedulers[0].fire() is False
    assert recorder.of(TIMER_UPDATE) == []


def test_resume_when_running_is_noop(timer, schedulers):
    timer.start(120)
    timer.resume()
    assert len(schedulers) == 1


def test_resume_after_stop_or_finish_is_noop(timer, clock, schedulers):
    timer.start(120)
    timer.stop()
    timer.resume()
    assert len(schedulers) == 1
    timer.start(1)
    clock.advance(2)
    schedulers[-1].fire()
    timer.resume()
    assert len(schedulers) == 2


def test_stop_marks_paused_and_cancels(timer, schedulers):
    timer.start(120)
    timer.stop()
    assert schedulers[0].cancelled
    assert timer.session.paused and timer.session.stopped
    assert not timer.running


def test_restart_leaves_exactly_one_loop(timer, clock, schedulers, recorder):
    timer.start(120, test_id="a")
    timer.start(60, test_id="b")
    assert schedulers[0].cancelled
    clock.advance(1)
    for s in schedulers:
        if s.callback:
            s.callback()
    updates = recorder.of(TIMER_UPDATE)
    assert updates == [{"timeRemaining": 59, "elapsed": 1, "testId": "b"}]


def test_small_drift_is_ignored(timer, recorder):
    timer.start(120)
    assert timer.sync(118) is None
    assert timer.sync(122) is None
    assert timer.session.drift_correction_ms == 0
    assert recorder.of(TIMER_SYNCED) == []


def test_drift_of_five_seconds_is_corrected(timer, clock, recorder):
    timer.start(120)
    now = clock.now
    assert timer.sync(115, now) == 5
    assert timer.session.drift_correction_ms == 5000
    assert recorder.of(TIMER_SYNCED) == [{"drift": 5, "correctedTime": 115, "syncTime": now}]
    assert timer.status()["timeRemaining"] == 115
    assert timer.session.last_sync == now


def test_negative_drift_adds_time(timer):
    timer.start(120)
    assert timer.sync(130) == -10
    assert timer.status()["timeRemaining"] == 130


def test_repeated_sync_does_not_double_correct(timer, recorder):
    timer.start(120)
    timer.sync(115)
    assert timer.sync(115) is None
    assert timer.session.drift_correction_ms == 5000
    assert len(recorder.of(TIMER_SYNCED)) == 1


@pytest.mark.parametrize(
    "remaining,server_time",
    [(-1, None), (None, None), (float("nan"), None), (True, None), ("10", None), (10, -5)],
)
def test_implausible_sync_is_ignored(timer, recorder, remaining, server_time):
    timer.start(120)
    assert timer.sync(remaining, server_time) is None
    assert timer.session.drift_correction_ms == 0
    assert recorder.of(TIMER_SYNCED) == []


def test_sync_before_start_is_ignored(timer):
    assert timer.sync(10) is None


def test_sync_while_paused_applies_correction(timer):
    timer.start(120)
    timer.pause()
    timer.sync(100)
    assert timer.status() == {"timeRemaining": 100, "elapsed": 20, "paused": True, "drift": 20000}


def test_session_deadline_tracks_correction():
    session = TimerSession(test_id=None, duration_seconds=60, start_time=0, end_time=60_000)
    session.drift_correction_ms = 3000
    assert session.deadline == 57_000
    assert session.expected_remaining(0) == 57
    assert session.remaining(0) == 57


@pytest.mark.parametrize("duration", [float("inf"), float("nan")])
def test_non_finite_duration_is_rejected(timer, schedulers, duration):
    with pytest.raises(ValueError, match="duration must be finite"):
        timer.start(duration)
    assert timer.session is None
    assert schedulers == []


def test_non_finite_start_time_is_rejected(timer, schedulers):
    with pytest.raises(ValueError, match="start_time must be finite"):
        timer.start(60, start_time=float("-inf"))
    assert schedulers == []


@pytest.mark.parametrize("server_remaining,correction", [(115, 5000), (130, -10_000)])
def test_end_time_moves_with_correction(timer, server_remaining, correction):
    session = timer.start(120)
    timer.sync(server_remaining)
    assert session.drift_correction_ms == correction
    assert session.end_time == session.start_time + 120 * 1000 + session.drift_correction_ms
    assert session.end_time == session.start_time + 120_000 + correction


def test_end_time_follows_every_applied_sync(timer, clock):
    session = timer.start(300)
    timer.sync(290)
    clock.advance(30)
    timer.sync(250)
    assert session.drift_correction_ms == 20_000
    assert session.end_time == session.start_time + 300_000 + 20_000
    assert timer.status()["timeRemaining"] == 250


def test_fractional_duration_is_not_truncated(timer, clock, schedulers, recorder):
    timer.start(0.5, test_id="t1")
    assert timer.status()["timeRemaining"] == 0.5
    clock.advance(1)
    assert schedulers[0].fire() is False
    assert recorder.of(TIMER_UPDATE) == [{"timeRemaining": 0, "elapsed": 1, "testId": "t1"}]
    assert recorder.of(TIMER_FINISHED) == [{"testId": "t1"}]


def test_whole_second_drift_is_emitted_as_int(timer, clock, recorder):
    timer.start(120.0)
    timer.sync(115.0, clock.now)
    [synced] = recorder.of(TIMER_SYNCED)
    assert type(synced["drift"]) is int
    assert type(synced["correctedTime"]) is int
    assert synced["drift"] == 5 and synced["correctedTime"] == 115
