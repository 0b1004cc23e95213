import pytest

from sitstand.phases import Phase, SessionType
from sitstand.scheduler import SessionScheduler
from sitstand.scheduler_config import SchedulerConfig
from sitstand.storage import SchedulerState


@pytest.fixture
def make_scheduler(clock, tickers, dispatcher, calendar, stats):
    def factory(**config_values) -> SessionScheduler:
        return SessionScheduler(
            config=SchedulerConfig(**config_values),
            dispatcher=dispatcher,
            calendar=calendar,
            stats=stats,
            clock=clock,
            ticker_factory=tickers
        )
    return factory


def test_start_sets_first_sitting_phase(make_scheduler, clock, tickers) -> None:
    scheduler = make_scheduler()
    scheduler.start()

    assert scheduler.is_running
    assert not scheduler.is_paused
    assert scheduler.current_phase == Phase.SITTING
    assert scheduler.next_deadline == clock.now + 2700
    assert tickers.active("session-tick").interval_sec == 1.0


def test_simple_mode_sitting_expires_into_standing(make_scheduler, clock, engine, stats) -> None:
    scheduler = make_scheduler(sitting_interval_sec=2700, standing_interval_sec=900)
    scheduler.start()

    clock.advance(2699)
    scheduler.tick()
    assert engine.sent == []
    assert scheduler.current_phase == Phase.SITTING

    clock.advance(1)
    scheduler.tick()

    assert len(engine.sent) == 1
    assert engine.sent[0]["title"] == "Time to Stand Up!"
    assert engine.sent[0]["subtitle"] == "You've been sitting for 45 minutes."
    assert stats.phases == [(SessionType.FOCUS, Phase.SITTING, 2700, False)]
    assert scheduler.current_phase == Phase.STANDING
    assert scheduler.next_deadline == clock.now + 900


def test_standing_expires_back_into_sitting(make_scheduler, clock, engine) -> None:
    scheduler = make_scheduler(sitting_interval_sec=60, standing_interval_sec=30)
    scheduler.start()
    clock.advance(60)
    scheduler.tick()
    clock.advance(30)
    scheduler.tick()

    assert engine.sent[-1]["title"] == "Time to Sit Down"
    assert scheduler.current_phase == Phase.SITTING
    assert scheduler.next_deadline == clock.now + 60


def test_pomodoro_long_break_after_four_focus_sessions(make_scheduler, clock) -> None:
    scheduler = make_scheduler(pomodoro_enabled=True, intervals_before_long_break=4)
    scheduler.start()

    breaks = []
    stances = []
    for _ in range(4):
        stances.append(scheduler.current_phase)
        clock.advance(scheduler.config.focus_interval_sec)
        scheduler.tick()
        breaks.append(scheduler.current_session_type)
        clock.advance(scheduler.current_interval)
        scheduler.tick()

    assert breaks == [
        SessionType.SHORT_BREAK,
        SessionType.SHORT_BREAK,
        SessionType.SHORT_BREAK,
        SessionType.LONG_BREAK,
    ]
    assert stances == [Phase.SITTING, Phase.STANDING, Phase.SITTING, Phase.STANDING]
    assert scheduler.completed_focus_sessions == 4
    assert scheduler.current_session_type == SessionType.FOCUS


def test_long_break_every_n_focus_sessions(make_scheduler, clock) -> None:
    scheduler = make_scheduler(pomodoro_enabled=True, intervals_before_long_break=2)
    scheduler.start()

    long_breaks_at = []
    for _ in range(6):
        clock.advance(scheduler.current_interval)
        scheduler.tick()
        if scheduler.current_session_type == SessionType.LONG_BREAK:
            long_breaks_at.append(scheduler.completed_focus_sessions)
        clock.advance(scheduler.current_interval)
        scheduler.tick()

    assert long_breaks_at == [2, 4, 6]


def test_pomodoro_notification_texts(make_scheduler, clock, engine) -> None:
    scheduler = make_scheduler(pomodoro_enabled=True)
    scheduler.start()

    clock.advance(1500)
    scheduler.tick()
    assert engine.sent[-1]["title"] == "Focus Session Complete!"
    assert engine.sent[-1]["message"] == "Time for a break."

    clock.advance(300)
    scheduler.tick()
    assert engine.sent[-1]["title"] == "Break Complete!"


def test_deadlines_never_decrease_across_fires(make_scheduler, clock) -> None:
    scheduler = make_scheduler(pomodoro_enabled=True, intervals_before_long_break=3)
    scheduler.start()

    deadlines = [scheduler.next_deadline]
    for _ in range(12):
        clock.advance(scheduler.current_interval + 3)
        scheduler.tick()
        deadlines.append(scheduler.next_deadline)

    assert deadlines == sorted(deadlines)


def test_pause_resume_preserves_remaining_time(make_scheduler, clock) -> None:
    scheduler = make_scheduler(sitting_interval_sec=2700)
    scheduler.start()

    clock.advance(600)
    scheduler.pause()
    assert scheduler.remaining_when_paused == 2100

    clock.advance(10_000)
    scheduler.tick()
    assert scheduler.current_phase == Phase.SITTING

    scheduler.resume()
    assert not scheduler.is_paused
    assert scheduler.next_deadline == clock.now + 2100


def test_immediate_pause_resume_keeps_deadline(make_scheduler) -> None:
    scheduler = make_scheduler()
    scheduler.start()
    deadline = scheduler.next_deadline

    scheduler.pause()
    scheduler.resume()

    assert scheduler.next_deadline == deadline


def test_repeated_guard_violations_are_noops(make_scheduler, clock) -> None:
    scheduler = make_scheduler()

    scheduler.stop()
    scheduler.pause()
    scheduler.resume()
    scheduler.skip_phase()
    assert scheduler.snapshot() == SchedulerState(config=scheduler.config)

    scheduler.start()
    clock.advance(100)
    scheduler.pause()
    paused = scheduler.snapshot()
    clock.advance(100)
    scheduler.pause()
    assert scheduler.snapshot() == paused

    scheduler.resume()
    running = scheduler.snapshot()
    scheduler.resume()
    assert scheduler.snapshot() == running


def test_start_rejects_non_positive_intervals(make_scheduler) -> None:
    scheduler = make_scheduler()

    scheduler.start(sitting_interval=0)
    scheduler.start(standing_interval=-5)

    assert not scheduler.is_running
    assert scheduler.config.sitting_interval_sec == 2700
    assert scheduler.config.standing_interval_sec == 900


def test_start_overrides_intervals(make_scheduler, clock) -> None:
    scheduler = make_scheduler()
    scheduler.start(sitting_interval=120, standing_interval=60)

    assert scheduler.config.sitting_interval_sec == 120
    assert scheduler.next_deadline == clock.now + 120


def test_meeting_mute_advances_silently(make_scheduler, clock, engine, calendar, stats) -> None:
    scheduler = make_scheduler()
    scheduler.start()
    calendar.busy = True

    clock.advance(2700)
    scheduler.tick()

    assert engine.sent == []
    assert stats.phases == []
    assert scheduler.current_phase == Phase.STANDING
    assert scheduler.next_deadline == clock.now + 900


def test_meeting_mute_off_notifies_while_busy(make_scheduler, clock, engine, calendar) -> None:
    scheduler = make_scheduler(calendar_filter=False)
    scheduler.start()
    calendar.busy = True

    clock.advance(2700)
    scheduler.tick()

    assert len(engine.sent) == 1


def test_skip_short_break_records_skipped_without_notification(make_scheduler, clock, engine, stats) -> None:
    scheduler = make_scheduler(pomodoro_enabled=True)
    scheduler.start()
    clock.advance(1500)
    scheduler.tick()
    assert scheduler.current_session_type == SessionType.SHORT_BREAK

    clock.advance(60)
    scheduler.skip_phase()

    assert stats.phases[-1] == (SessionType.SHORT_BREAK, None, 60, True)
    assert scheduler.current_session_type == SessionType.FOCUS
    assert scheduler.next_deadline == clock.now + 1500
    assert len(engine.sent) == 1


def test_skip_focus_is_not_marked_skipped(make_scheduler, clock, stats) -> None:
    scheduler = make_scheduler(pomodoro_enabled=True)
    scheduler.start()
    clock.advance(200)
    scheduler.skip_phase()

    assert stats.phases == [(SessionType.FOCUS, Phase.SITTING, 200, False)]
    assert scheduler.current_session_type == SessionType.SHORT_BREAK
    assert scheduler.completed_focus_sessions == 1


def test_skip_while_paused_resumes_first(make_scheduler, clock) -> None:
    scheduler = make_scheduler()
    scheduler.start()
    scheduler.pause()

    scheduler.skip_phase()

    assert not scheduler.is_paused
    assert scheduler.current_phase == Phase.STANDING
    assert scheduler.next_deadline == clock.now + 900


def test_auto_start_off_parks_until_resume(make_scheduler, clock, engine, stats) -> None:
    scheduler = make_scheduler(auto_start_enabled=False)
    scheduler.start()

    clock.advance(2700)
    scheduler.tick()

    assert "Open the menu" in engine.sent[0]["message"]
    assert scheduler.is_paused
    assert scheduler.awaiting_manual_start
    assert scheduler.current_phase == Phase.SITTING
    assert scheduler.current_remaining_time == 0

    clock.advance(300)
    scheduler.tick()
    assert len(engine.sent) == 1

    scheduler.resume()
    assert not scheduler.is_paused
    assert not scheduler.awaiting_manual_start
    assert scheduler.current_phase == Phase.STANDING
    assert scheduler.next_deadline == clock.now + 900
    assert len(stats.phases) == 1


def test_skip_while_parked_starts_next_phase_once(make_scheduler, clock) -> None:
    scheduler = make_scheduler(auto_start_enabled=False)
    scheduler.start()
    clock.advance(2700)
    scheduler.tick()

    scheduler.skip_phase()

    assert scheduler.current_phase == Phase.STANDING
    assert not scheduler.is_paused


def test_stop_records_phase_and_resets(make_scheduler, clock, tickers, stats) -> None:
    scheduler = make_scheduler(pomodoro_enabled=True)
    scheduler.start()
    ticker = tickers.active("session-tick")
    clock.advance(400)

    scheduler.stop()

    assert stats.phases == [(SessionType.FOCUS, Phase.SITTING, 400, False)]
    assert not scheduler.is_running
    assert scheduler.pomodoro_enabled
    assert scheduler.completed_focus_sessions == 0
    assert ticker.cancelled


def test_restart_begins_fresh_cycle(make_scheduler, clock) -> None:
    scheduler = make_scheduler()
    scheduler.start()
    clock.advance(2700)
    scheduler.tick()
    assert scheduler.current_phase == Phase.STANDING

    scheduler.restart()

    assert scheduler.is_running
    assert scheduler.current_phase == Phase.SITTING
    assert scheduler.next_deadline == clock.now + 2700


def test_stale_ticker_callback_is_ignored(make_scheduler, clock, tickers, engine) -> None:
    scheduler = make_scheduler(sitting_interval_sec=60)
    scheduler.start()
    old = tickers.active("session-tick")
    scheduler.stop()
    scheduler.start()
    new = tickers.active("session-tick")

    clock.advance(60)
    old.fire()
    assert engine.sent == []

    new.fire()
    assert len(engine.sent) == 1


def test_enabling_pomodoro_rebases_running_session(make_scheduler, clock) -> None:
    scheduler = make_scheduler()
    scheduler.start()
    clock.advance(100)

    scheduler.set_pomodoro_mode(True)

    assert scheduler.current_session_type == SessionType.FOCUS
    assert scheduler.completed_focus_sessions == 0
    assert scheduler.next_deadline == clock.now + 1500

    clock.advance(50)
    scheduler.set_pomodoro_mode(False)
    assert scheduler.current_phase == Phase.SITTING
    assert scheduler.next_deadline == clock.now + 2700


def test_pomodoro_toggle_while_paused_keeps_remaining(make_scheduler, clock) -> None:
    scheduler = make_scheduler()
    scheduler.start()
    clock.advance(100)
    scheduler.pause()

    scheduler.set_pomodoro_mode(True)

    assert scheduler.pomodoro_enabled
    assert scheduler.remaining_when_paused == 2600


def test_work_period_follows_mode(make_scheduler, clock) -> None:
    scheduler = make_scheduler(pomodoro_enabled=True)
    scheduler.start()
    assert scheduler.is_work_period()

    clock.advance(1500)
    scheduler.tick()
    assert not scheduler.is_work_period()

    scheduler.set_pomodoro_mode(False)
    assert scheduler.is_work_period()


def test_remaining_time_string(make_scheduler, clock) -> None:
    scheduler = make_scheduler()
    assert scheduler.remaining_time_string == "0s"

    scheduler.start()
    clock.advance(2700 - 65)
    assert scheduler.remaining_time_string == "1m 5s"

    clock.advance(30)
    assert scheduler.remaining_time_string == "35s"


def test_listeners_receive_copies_and_survive_errors(make_scheduler) -> None:
    scheduler = make_scheduler()
    received = []

    def broken(state):
        raise RuntimeError("disk full")

    scheduler.add_listener(broken)
    scheduler.add_listener(received.append)
    scheduler.start()
    scheduler.pause()

    assert [s.is_paused for s in received] == [False, True]
    received[0].is_running = False
    assert scheduler.is_running


def test_restore_running_snapshot_fires_overdue_deadline(make_scheduler, clock, engine, tickers) -> None:
    scheduler = make_scheduler()
    snapshot = SchedulerState(
        is_running=True,
        current_phase=Phase.STANDING,
        next_deadline=clock.now - 30,
        phase_started_at=clock.now - 930
    )

    scheduler.restore(snapshot)
    tickers.active("session-tick").fire()

    assert engine.sent[0]["title"] == "Time to Sit Down"
    assert scheduler.current_phase == Phase.SITTING


def test_update_config_applies_from_next_phase(make_scheduler, clock) -> None:
    scheduler = make_scheduler()
    scheduler.start()
    deadline = scheduler.next_deadline

    scheduler.update_config(standing_interval_sec=600)
    assert scheduler.next_deadline == deadline

    clock.advance(2700)
    scheduler.tick()
    assert scheduler.next_deadline == clock.now + 600


def test_update_config_rejects_non_positive_interval(make_scheduler, clock, engine) -> None:
    scheduler = make_scheduler()
    scheduler.start()
    before = scheduler.config

    scheduler.update_config(standing_interval_sec=0, sitting_interval_sec=1200)
    scheduler.update_config(focus_interval_sec=-60)

    assert scheduler.config == before

    clock.advance(2700)
    scheduler.tick()
    assert scheduler.next_deadline == clock.now + 900

    scheduler.tick()
    assert len(engine.sent) == 1


def test_update_config_ignores_unknown_keys(make_scheduler) -> None:
    scheduler = make_scheduler()

    scheduler.update_config(bogus=1, sitting_interval_sec=1800)

    assert scheduler.config.sitting_interval_sec == 1800
    assert not hasattr(scheduler.config, "bogus")


def test_no_work_period_unless_running_and_unpaused(make_scheduler) -> None:
    scheduler = make_scheduler()
    assert not scheduler.is_work_period()

    scheduler.start()
    assert scheduler.is_work_period()

    scheduler.pause()
    assert not scheduler.is_work_period()

    scheduler.resume()
    assert scheduler.is_work_period()

    scheduler.stop()
    assert not scheduler.is_work_period()
