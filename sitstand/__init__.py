"""
SitStand Coach Core Module
Sit/stand and Pomodoro session scheduling with posture reminders.
"""

from .phases import Phase, SessionType, PostureEvent
from .ticker import Ticker
from .scheduler_config import SchedulerConfig
from .nudge_config import BackoffConfig, NudgeConfig
from .event_logger import EventLogger
from .notifications import NotificationEngine, NotificationDispatcher
from .calendar_oracle import (
    CalendarEvent,
    CalendarOracle,
    CachedCalendarOracle,
    JsonFileEventSource,
    meeting_muted
)
from .stats import StatsService, StatsSummary, AggregationPeriod
from .storage import SchedulerState, SchedulerStore
from .config_manager import ConfigManager
from .posture_signal import PostureSignal
from .backoff import NotificationBackoffEngine, BackoffState
from .nudges import PostureNudgeScheduler, NudgeState
from .scheduler import SessionScheduler
from .status_bus import StatusBus, StatusSnapshot, create_snapshot_from_coach, read_status
from .coach import CoachService
from .service_manager import ServiceManager, get_service_manager

__all__ = [
    "Phase",
    "SessionType",
    "PostureEvent",
    "Ticker",
    "SchedulerConfig",
    "BackoffConfig",
    "NudgeConfig",
    "EventLogger",
    "NotificationEngine",
    "NotificationDispatcher",
    "CalendarEvent",
    "CalendarOracle",
    "CachedCalendarOracle",
    "JsonFileEventSource",
    "meeting_muted",
    "StatsService",
    "StatsSummary",
    "AggregationPeriod",
    "SchedulerState",
    "SchedulerStore",
    "ConfigManager",
    "PostureSignal",
    "NotificationBackoffEngine",
    "BackoffState",
    "PostureNudgeScheduler",
    "NudgeState",
    "SessionScheduler",
    "StatusBus",
    "StatusSnapshot",
    "create_snapshot_from_coach",
    "read_status",
    "CoachService",
    "ServiceManager",
    "get_service_manager"
]
