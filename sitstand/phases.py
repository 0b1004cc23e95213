"""
Phase and session enums shared by the scheduler, nudges and backoff engine.
"""

from enum import Enum


class Phase(Enum):
    """Physical stance for the current work period."""
    SITTING = "sitting"
    STANDING = "standing"

    def toggled(self) -> "Phase":
        """Return the opposite stance."""
        return Phase.STANDING if self is Phase.SITTING else Phase.SITTING


class SessionType(Enum):
    """
    Pomodoro sub-state.

    Only meaningful in Pomodoro mode. Simple mode always reports FOCUS.
    """
    FOCUS = "focus"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @property
    def is_break(self) -> bool:
        return self is not SessionType.FOCUS


class PostureEvent(Enum):
    """
    Posture-quality events produced by an external analyzer.

    Raw sensor data never reaches the coach; only these transitions do.
    """
    GOOD = "good"                      # poor -> good transition
    POOR = "poor"                      # good -> poor transition
    POOR_SUSTAINED = "poor_sustained"  # poor posture held past the alert threshold
    STOOD_UP = "stood_up"
