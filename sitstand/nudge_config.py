"""
Posture alert backoff and nudge configuration.
"""

from dataclasses import dataclass, asdict, fields
from typing import Dict, Any


@dataclass
class BackoffConfig:
    """
    Configuration for exponential backoff between posture alerts.

    Wait before alert n (n = alerts already delivered):
    0s, 60s, 180s, 540s, then max_backoff_sec once the last
    escalation tier is reached.
    """
    base_backoff_sec: float = 60.0
    backoff_exponent: float = 3.0
    max_backoff_sec: float = 300.0           # 5 min
    max_backoff_after_count: int = 4         # Final message tier; cap applies from here

    # Good posture reset
    reset_backoff_after_sec: float = 1800.0  # 30 min of sustained good posture
    reset_check_interval_sec: float = 30.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BackoffConfig':
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class NudgeConfig:
    """
    Configuration for random posture nudges during work periods.

    All durations in seconds.
    """
    min_interval_sec: float = 15 * 60
    max_interval_sec: float = 45 * 60
    check_interval_sec: float = 60.0

    def __post_init__(self):
        if self.max_interval_sec < self.min_interval_sec:
            self.min_interval_sec, self.max_interval_sec = self.max_interval_sec, self.min_interval_sec

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NudgeConfig':
        """Create from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
