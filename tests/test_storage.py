import json

from sitstand.config_manager import ConfigManager
from sitstand.nudge_config import BackoffConfig, NudgeConfig
from sitstand.phases import Phase, SessionType
from sitstand.scheduler_config import SchedulerConfig
from sitstand.storage import SchedulerState, SchedulerStore


def test_snapshot_survives_save_and_load(tmp_path) -> None:
    store = SchedulerStore(str(tmp_path))
    state = SchedulerState(
        is_running=True,
        is_paused=True,
        pomodoro_enabled=True,
        current_phase=Phase.STANDING,
        current_session_type=SessionType.LONG_BREAK,
        remaining_when_paused=321.5,
        completed_focus_sessions=4,
        config=SchedulerConfig(focus_interval_sec=1200, pomodoro_enabled=True),
    )

    assert store.save_snapshot(state)
    assert store.load_snapshot() == state


def test_missing_or_corrupt_snapshot_loads_as_none(tmp_path) -> None:
    store = SchedulerStore(str(tmp_path))
    assert store.load_snapshot() is None

    store.state_file.write_text("{broken")
    assert store.load_snapshot() is None


def test_unknown_enum_values_fall_back_to_defaults() -> None:
    state = SchedulerState.from_dict({
        "is_running": True,
        "current_phase": "lying",
        "current_session_type": "nap",
    })

    assert state.is_running
    assert state.current_phase == Phase.SITTING
    assert state.current_session_type == SessionType.FOCUS


def test_paused_flag_requires_running() -> None:
    state = SchedulerState.from_dict({"is_running": False, "is_paused": True})
    assert not state.is_paused


def test_clear_removes_snapshot(tmp_path) -> None:
    store = SchedulerStore(str(tmp_path))
    store.save_snapshot(SchedulerState())
    store.clear()
    assert not store.state_file.exists()


def test_config_defaults_when_file_missing(tmp_path) -> None:
    manager = ConfigManager(str(tmp_path / "ui_config.json"))
    scheduler_config, backoff_config, nudge_config = manager.load_config()

    assert scheduler_config == SchedulerConfig()
    assert backoff_config == BackoffConfig()
    assert nudge_config == NudgeConfig()


def test_config_save_and_load(tmp_path) -> None:
    manager = ConfigManager(str(tmp_path / "ui_config.json"))
    manager.save_config(
        SchedulerConfig(sitting_interval_sec=1800, auto_start_enabled=False),
        BackoffConfig(base_backoff_sec=30),
        NudgeConfig(min_interval_sec=600),
    )

    scheduler_config, backoff_config, nudge_config = manager.load_config()

    assert scheduler_config.sitting_interval_sec == 1800
    assert not scheduler_config.auto_start_enabled
    assert backoff_config.base_backoff_sec == 30
    assert nudge_config.min_interval_sec == 600


def test_partial_config_is_merged_over_defaults(tmp_path) -> None:
    path = tmp_path / "ui_config.json"
    path.write_text(json.dumps({"scheduler_config": {"pomodoro_enabled": True, "unknown": 1}}))

    scheduler_config, backoff_config, _ = ConfigManager(str(path)).load_config()

    assert scheduler_config.pomodoro_enabled
    assert scheduler_config.standing_interval_sec == 900
    assert backoff_config == BackoffConfig()


def test_corrupt_config_uses_defaults_and_purge_deletes(tmp_path) -> None:
    path = tmp_path / "ui_config.json"
    path.write_text("not json")
    manager = ConfigManager(str(path))

    assert manager.load_config()[0] == SchedulerConfig()

    manager.purge_config()
    assert not path.exists()


def test_config_value_normalisation() -> None:
    assert SchedulerConfig(intervals_before_long_break=0).intervals_before_long_break == 1

    nudge_config = NudgeConfig(min_interval_sec=3000, max_interval_sec=600)
    assert (nudge_config.min_interval_sec, nudge_config.max_interval_sec) == (600, 3000)
