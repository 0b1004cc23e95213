"""
Process control for the background coach runner.

The UI never runs the scheduler itself. It launches dev_runner.py as a
detached process, remembers it in a pidfile and reads its log and
status.json.
"""

import os
import sys
import json
import time
import signal
import subprocess
from pathlib import Path
from typing import Optional, Dict, Any, List
from datetime import datetime


STORAGE_ROOT_ENV = "SITSTAND_STORAGE_ROOT"


def process_alive(pid: int) -> bool:
    """Signal 0 probes a pid without touching the process."""
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


class ServiceManager:
    """
    Starts and stops one runner process per storage directory.

    The pidfile is the single source of truth. A pidfile that names a dead
    process (crash, reboot) is removed the next time anyone asks.
    """

    def __init__(
        self,
        pidfile: str = "storage/sitstand.pid",
        service_info_file: str = "storage/service.json",
        log_file: str = "storage/sitstand.log",
        runner_path: Optional[str] = None
    ):
        """
        Args:
            pidfile: Runner pid
            service_info_file: Launch details shown by the UI
            log_file: Runner stdout and stderr
            runner_path: Runner script (default: dev_runner.py next to the package)
        """
        self.pidfile = Path(pidfile)
        self.service_info_file = Path(service_info_file)
        self.log_file = Path(log_file)

        project_root = Path(__file__).resolve().parent.parent
        self.runner_path = Path(runner_path) if runner_path else project_root / "dev_runner.py"

        self.pidfile.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _read_pid(self) -> Optional[int]:
        try:
            return int(self.pidfile.read_text().strip())
        except (ValueError, OSError):
            return None

    def is_running(self) -> bool:
        """True when the pidfile names a live process. Stale pidfiles are removed."""
        if not self.pidfile.exists():
            return False

        pid = self._read_pid()
        if pid is not None and process_alive(pid):
            return True

        print(f"[SERVICE] Removing stale pidfile {self.pidfile}")
        self._cleanup()
        return False

    def get_pid(self) -> Optional[int]:
        return self._read_pid() if self.is_running() else None

    def get_service_info(self) -> Optional[Dict[str, Any]]:
        """Launch details of the live runner, or None."""
        if not self.is_running():
            return None

        try:
            return json.loads(self.service_info_file.read_text())
        except (json.JSONDecodeError, OSError):
            return None

    def tail_logs(self, lines: int = 20) -> str:
        if not self.log_file.exists():
            return "No logs available (log file not found)"

        try:
            with open(self.log_file, 'r') as f:
                return ''.join(f.readlines()[-lines:])
        except OSError as e:
            return f"Error reading logs: {e}"

    # ------------------------------------------------------------------
    # Start / stop
    # ------------------------------------------------------------------

    def build_command(
        self,
        pomodoro: bool = False,
        dry_run: bool = False,
        events_file: Optional[str] = None,
        extra_args: Optional[List[str]] = None
    ) -> List[str]:
        """
        Runner command line.

        The runner always restores the last scheduler snapshot, so a
        restarted service picks up the running session.
        """
        cmd = [sys.executable, str(self.runner_path), "--restore"]
        flags = {"--pomodoro": pomodoro, "--dry-run": dry_run}
        cmd.extend(flag for flag, wanted in flags.items() if wanted)
        if events_file:
            cmd += ["--events-file", events_file]
        cmd += list(extra_args or [])
        return cmd

    def start_background(
        self,
        pomodoro: bool = False,
        dry_run: bool = False,
        events_file: Optional[str] = None,
        extra_args: Optional[List[str]] = None
    ) -> Optional[int]:
        """
        Launch the runner unless one is already alive.

        Returns:
            Runner pid (existing or new), or None when the launch failed
        """
        existing = self.get_pid()
        if existing is not None:
            print(f"[SERVICE] Already running (PID: {existing})")
            return existing

        if not self.runner_path.exists():
            print(f"[SERVICE] Error: runner not found at {self.runner_path}")
            return None

        cmd = self.build_command(pomodoro, dry_run, events_file, extra_args)

        # The runner's relative storage/ paths resolve against its cwd
        storage_root = os.environ.get(STORAGE_ROOT_ENV)
        cwd = Path(storage_root).expanduser() if storage_root else self.runner_path.parent

        try:
            with open(self.log_file, 'w') as log_handle:
                process = subprocess.Popen(
                    cmd,
                    cwd=str(cwd),
                    stdout=log_handle,
                    stderr=subprocess.STDOUT,
                    start_new_session=True
                )
            self.pidfile.write_text(str(process.pid))
            self._write_service_info({
                "pid": process.pid,
                "started_at": datetime.now().isoformat(),
                "cmdline": cmd,
                "pomodoro": pomodoro,
                "dry_run": dry_run,
                "events_file": events_file
            })
        except OSError as e:
            print(f"[SERVICE] Error starting service: {e}")
            self._cleanup()
            return None

        print(f"[SERVICE] Started background service (PID: {process.pid})")
        return process.pid

    def stop_background(self, timeout: float = 5.0) -> bool:
        """
        SIGTERM the runner and wait; SIGKILL it after timeout seconds.

        Returns:
            False only when the runner could not be signalled
        """
        pid = self.get_pid()
        if pid is None:
            print("[SERVICE] Not running")
            return True

        print(f"[SERVICE] Stopping service (PID: {pid})...")
        try:
            os.kill(pid, signal.SIGTERM)
        except OSError as e:
            print(f"[SERVICE] Error stopping service: {e}")
            self._cleanup()
            return False

        if self._wait_for_exit(pid, timeout):
            print("[SERVICE] Stopped gracefully")
        else:
            print("[SERVICE] Timeout, force killing...")
            try:
                os.kill(pid, getattr(signal, "SIGKILL", signal.SIGTERM))
            except OSError:
                pass
            self._wait_for_exit(pid, 0.5)
            print("[SERVICE] Stopped (force)")

        self._cleanup()
        return True

    @staticmethod
    def _wait_for_exit(pid: int, timeout: float) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            if not process_alive(pid):
                return True
            time.sleep(0.1)
        return not process_alive(pid)

    def _write_service_info(self, info: Dict[str, Any]):
        temp_file = self.service_info_file.with_suffix('.tmp')
        temp_file.write_text(json.dumps(info, indent=2))
        os.replace(temp_file, self.service_info_file)

    def _cleanup(self):
        for path in (self.pidfile, self.service_info_file):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                print(f"[SERVICE] Could not remove {path}: {e}")


_service_manager: Optional[ServiceManager] = None


def get_service_manager() -> ServiceManager:
    """Process-wide ServiceManager with the default storage paths."""
    global _service_manager
    if _service_manager is None:
        _service_manager = ServiceManager()
    return _service_manager
