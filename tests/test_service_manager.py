import json
import os
import sys

import pytest

from sitstand import service_manager
from sitstand.service_manager import ServiceManager


@pytest.fixture
def manager(tmp_path) -> ServiceManager:
    return ServiceManager(
        pidfile=str(tmp_path / "sitstand.pid"),
        service_info_file=str(tmp_path / "service.json"),
        log_file=str(tmp_path / "sitstand.log"),
        runner_path=str(tmp_path / "dev_runner.py"),
    )


def test_not_running_without_pidfile(manager) -> None:
    assert not manager.is_running()
    assert manager.get_pid() is None
    assert manager.get_service_info() is None


def test_stale_pidfile_is_cleaned_up(manager, monkeypatch) -> None:
    manager.pidfile.write_text("424242")
    manager.service_info_file.write_text(json.dumps({"pid": 424242}))
    monkeypatch.setattr(service_manager, "process_alive", lambda pid: False)

    assert not manager.is_running()
    assert not manager.pidfile.exists()
    assert not manager.service_info_file.exists()


def test_garbage_pidfile_is_cleaned_up(manager) -> None:
    manager.pidfile.write_text("not a pid")

    assert not manager.is_running()
    assert not manager.pidfile.exists()


def test_live_pid_reports_service_info(manager) -> None:
    manager.pidfile.write_text(str(os.getpid()))
    manager.service_info_file.write_text(json.dumps({"pid": os.getpid(), "pomodoro": True}))

    assert manager.is_running()
    assert manager.get_pid() == os.getpid()
    assert manager.get_service_info()["pomodoro"]


def test_build_command_flags(manager) -> None:
    cmd = manager.build_command(
        pomodoro=True,
        dry_run=True,
        events_file="events.json",
        extra_args=["--verbose"],
    )

    assert cmd[:3] == [sys.executable, str(manager.runner_path), "--restore"]
    assert cmd[3:] == ["--pomodoro", "--dry-run", "--events-file", "events.json", "--verbose"]


def test_build_command_defaults(manager) -> None:
    assert manager.build_command() == [sys.executable, str(manager.runner_path), "--restore"]


def test_start_without_runner_script(manager) -> None:
    assert manager.start_background() is None
    assert not manager.pidfile.exists()


def test_stop_when_not_running(manager) -> None:
    assert manager.stop_background()


def test_tail_logs(manager) -> None:
    assert "not found" in manager.tail_logs()

    manager.log_file.write_text("".join(f"line {i}\n" for i in range(30)))

    assert manager.tail_logs(2) == "line 28\nline 29\n"
