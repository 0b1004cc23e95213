"""
Status Bus - IPC bridge for live status updates.

Publishes the current scheduler state to storage/status.json for UI consumption.
"""

import json
import os
import time
import threading
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Callable
from pathlib import Path


@dataclass
class StatusSnapshot:
    """
    Single snapshot of current coach state.
    """
    # Timestamp
    ts_unix: float

    # Scheduler
    running: bool
    paused: bool
    awaiting_manual_start: bool
    pomodoro_enabled: bool
    phase: str             # "sitting", "standing"
    session_type: str      # "focus", "shortBreak", "longBreak"
    label: str             # e.g. "focus/sitting"
    remaining_sec: float
    remaining_text: str    # e.g. "12m 5s"
    completed_focus_sessions: int

    # Calendar
    in_meeting: bool
    meeting: Optional[Dict[str, str]]  # {title, ends_at}

    # Posture alerts and nudges
    backoff: Dict[str, Any]
    nudges: Dict[str, Any]


class StatusBus:
    """
    Background publisher that writes status snapshots to JSON file.

    Thread-safe, atomic writes, best-effort delivery.
    """

    def __init__(
        self,
        status_file: str = "storage/status.json",
        update_interval_sec: float = 1.0
    ):
        """
        Initialize status bus.

        Args:
            status_file: Path to status JSON file
            update_interval_sec: How often to publish (default: 1 Hz)
        """
        self.status_file = Path(status_file)
        self.status_file.parent.mkdir(parents=True, exist_ok=True)

        self.update_interval_sec = update_interval_sec

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._snapshot_provider: Optional[Callable[[], Optional[StatusSnapshot]]] = None

        self._error_count = 0
        self._last_error_time = 0.0
        self._backoff_sec = 1.0

    def set_snapshot_provider(self, provider: Callable[[], Optional[StatusSnapshot]]):
        """
        Set the callback that provides status snapshots.

        Args:
            provider: Function that returns current StatusSnapshot or None
        """
        self._snapshot_provider = provider

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self):
        """Start the publisher thread."""
        if self._thread is not None:
            return

        if not self._snapshot_provider:
            raise ValueError("Must set snapshot provider before starting")

        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._publish_loop,
            args=(self._stop_event,),
            name="status-bus",
            daemon=True
        )
        self._thread.start()

    def stop(self):
        """Stop the publisher thread."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

    def publish_once(self) -> bool:
        """
        Write one snapshot now.

        Returns:
            True if a snapshot was written
        """
        snapshot = self._snapshot_provider() if self._snapshot_provider else None
        if snapshot is None:
            return False
        self._write_snapshot(snapshot)
        return True

    def _publish_loop(self, stop_event: threading.Event):
        """Main publisher loop (runs in background thread)."""
        while not stop_event.is_set():
            try:
                if self.publish_once():
                    self._error_count = 0
                    self._backoff_sec = 1.0

                stop_event.wait(self.update_interval_sec)

            except Exception as e:
                # Best-effort: log error but keep running
                self._error_count += 1
                current_time = time.time()

                # Only log errors occasionally to avoid spam
                if current_time - self._last_error_time > 10.0:
                    print(f"[STATUS_BUS] Error publishing status: {e}")
                    self._last_error_time = current_time

                # Exponential backoff on repeated errors
                if self._error_count > 3:
                    self._backoff_sec = min(self._backoff_sec * 2, 30.0)
                    stop_event.wait(self._backoff_sec)
                else:
                    stop_event.wait(self.update_interval_sec)

    def _write_snapshot(self, snapshot: StatusSnapshot):
        """
        Write snapshot to file atomically.

        Uses temp file + os.replace() to ensure atomic write.

        Args:
            snapshot: StatusSnapshot to write
        """
        json_str = json.dumps(asdict(snapshot), indent=2)

        temp_file = self.status_file.with_suffix('.tmp')
        with open(temp_file, 'w') as f:
            f.write(json_str)

        os.replace(temp_file, self.status_file)


def read_status(status_file: str = "storage/status.json") -> Optional[Dict[str, Any]]:
    """
    Read the last published status (UI side).

    Returns:
        Status dictionary, or None if missing or unreadable
    """
    path = Path(status_file)
    if not path.exists():
        return None

    try:
        with open(path, 'r') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError):
        return None


def create_snapshot_from_coach(
    scheduler,
    backoff=None,
    nudges=None,
    calendar=None
) -> Optional[StatusSnapshot]:
    """
    Create StatusSnapshot from the running coach components.

    Args:
        scheduler: SessionScheduler instance
        backoff: NotificationBackoffEngine instance
        nudges: PostureNudgeScheduler instance
        calendar: CalendarOracle instance

    Returns:
        StatusSnapshot or None on error
    """
    try:
        state = scheduler.snapshot()

        meeting = None
        in_meeting = False
        if calendar is not None and state.config.calendar_filter:
            in_meeting = calendar.is_currently_busy()
            details = getattr(calendar, "current_event_details", None)
            if in_meeting and details is not None:
                event = details()
                if event:
                    meeting = {"title": event[0], "ends_at": event[1]}

        return StatusSnapshot(
            ts_unix=time.time(),
            running=state.is_running,
            paused=state.is_paused,
            awaiting_manual_start=state.awaiting_manual_start,
            pomodoro_enabled=state.pomodoro_enabled,
            phase=state.current_phase.value,
            session_type=state.current_session_type.value,
            label=scheduler.phase_label(),
            remaining_sec=scheduler.current_remaining_time,
            remaining_text=scheduler.remaining_time_string,
            completed_focus_sessions=state.completed_focus_sessions,
            in_meeting=in_meeting,
            meeting=meeting,
            backoff=backoff.get_backoff_status() if backoff is not None else {},
            nudges=nudges.get_nudge_status() if nudges is not None else {}
        )

    except Exception as e:
        print(f"[STATUS_BUS] Error creating snapshot: {e}")
        return None
