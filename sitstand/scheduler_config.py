"""
Session scheduler configuration: intervals and behaviour toggles.
"""

from dataclasses import dataclass, asdict, fields
from typing import Dict, Any


@dataclass
class SchedulerConfig:
    """
    Configuration for the session scheduler.

    All intervals in seconds. Defaults match the shipped app:
    - Simple mode: 45 min sitting / 15 min standing
    - Pomodoro: 25 min focus, 5 min short break, 15 min long break,
      long break after every 4 focus sessions
    """
    # Simple mode
    sitting_interval_sec: float = 45 * 60
    standing_interval_sec: float = 15 * 60

    # Pomodoro mode
    focus_interval_sec: float = 25 * 60
    short_break_interval_sec: float = 5 * 60
    long_break_interval_sec: float = 15 * 60
    intervals_before_long_break: int = 4

    # Behaviour
    pomodoro_enabled: bool = False
    auto_start_enabled: bool = True      # Continue into the next phase without user action
    calendar_filter: bool = True         # Mute notifications during calendar events
    posture_nudges_enabled: bool = False
    posture_tracking_enabled: bool = False

    def __post_init__(self):
        # A long break cadence of 0 would divide by zero in the phase switch
        self.intervals_before_long_break = max(1, int(self.intervals_before_long_break))

    def has_valid_simple_intervals(self) -> bool:
        """Both simple-mode intervals must be positive to run."""
        return self.sitting_interval_sec > 0 and self.standing_interval_sec > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SchedulerConfig':
        """
        Create from dictionary, ignoring unknown keys.

        Missing keys fall back to the dataclass defaults.
        """
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
