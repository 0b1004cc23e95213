"""
Scheduler state snapshot and its on-disk store.

The scheduler publishes a SchedulerState after every mutation; the store
writes it to storage/scheduler_state.json so a relaunch can pick up where
the previous process stopped.
"""

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Dict, Any

from .phases import Phase, SessionType
from .scheduler_config import SchedulerConfig


@dataclass
class SchedulerState:
    """
    Aggregate scheduler state.

    Exactly one of these holds:
    - not running
    - running, not paused: next_deadline is valid
    - running, paused: remaining_when_paused is valid
    """
    is_running: bool = False
    is_paused: bool = False
    pomodoro_enabled: bool = False
    current_phase: Phase = Phase.SITTING
    current_session_type: SessionType = SessionType.FOCUS
    next_deadline: float = 0.0  # unix seconds
    remaining_when_paused: float = 0.0  # seconds
    completed_focus_sessions: int = 0
    phase_started_at: Optional[float] = None  # unix seconds, for stats
    awaiting_manual_start: bool = False  # phase expired with auto-start off
    config: SchedulerConfig = field(default_factory=SchedulerConfig)

    def copy(self) -> 'SchedulerState':
        """Detached copy (config included)."""
        return replace(self, config=replace(self.config))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-safe dictionary."""
        return {
            "is_running": self.is_running,
            "is_paused": self.is_paused,
            "pomodoro_enabled": self.pomodoro_enabled,
            "current_phase": self.current_phase.value,
            "current_session_type": self.current_session_type.value,
            "next_deadline": self.next_deadline,
            "remaining_when_paused": self.remaining_when_paused,
            "completed_focus_sessions": self.completed_focus_sessions,
            "phase_started_at": self.phase_started_at,
            "awaiting_manual_start": self.awaiting_manual_start,
            "config": self.config.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SchedulerState':
        """
        Create from dictionary.

        Unknown enum values and missing keys fall back to the defaults.
        """
        try:
            phase = Phase(data.get("current_phase", Phase.SITTING.value))
        except ValueError:
            phase = Phase.SITTING
        try:
            session_type = SessionType(data.get("current_session_type", SessionType.FOCUS.value))
        except ValueError:
            session_type = SessionType.FOCUS

        is_running = bool(data.get("is_running", False))
        return cls(
            is_running=is_running,
            is_paused=is_running and bool(data.get("is_paused", False)),
            pomodoro_enabled=bool(data.get("pomodoro_enabled", False)),
            current_phase=phase,
            current_session_type=session_type,
            next_deadline=float(data.get("next_deadline", 0.0)),
            remaining_when_paused=float(data.get("remaining_when_paused", 0.0)),
            completed_focus_sessions=int(data.get("completed_focus_sessions", 0)),
            phase_started_at=data.get("phase_started_at"),
            awaiting_manual_start=bool(data.get("awaiting_manual_start", False)),
            config=SchedulerConfig.from_dict(data.get("config", {}))
        )


class SchedulerStore:
    """
    Persists scheduler snapshots.

    Storage location: ./storage/scheduler_state.json
    Writes are atomic (temp file + os.replace) and best-effort.
    """

    def __init__(self, storage_dir: str = "./storage"):
        """
        Initialize scheduler store.

        Args:
            storage_dir: Directory for storage files
        """
        self.storage_dir = Path(storage_dir)
        self.state_file = self.storage_dir / "scheduler_state.json"

        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def save_snapshot(self, state: SchedulerState) -> bool:
        """
        Save a scheduler snapshot to disk.

        Args:
            state: Snapshot published by the scheduler

        Returns:
            True if saved successfully
        """
        try:
            data = {
                "version": "1.0",
                "state": state.to_dict()
            }

            temp_file = self.state_file.with_suffix('.tmp')
            with open(temp_file, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(temp_file, self.state_file)

            return True

        except (OSError, TypeError, ValueError) as e:
            print(f"[STORAGE] Failed to save scheduler state: {e}")
            return False

    def load_snapshot(self) -> Optional[SchedulerState]:
        """
        Load the last saved snapshot.

        Returns:
            SchedulerState, or None if nothing valid is stored
        """
        if not self.state_file.exists():
            return None

        try:
            with open(self.state_file, 'r') as f:
                data = json.load(f)
            return SchedulerState.from_dict(data.get("state", {}))
        except (OSError, json.JSONDecodeError, TypeError, ValueError, AttributeError) as e:
            print(f"[STORAGE] Failed to load scheduler state: {e}")
            return None

    def clear(self):
        """Delete the stored snapshot."""
        if self.state_file.exists():
            self.state_file.unlink()
