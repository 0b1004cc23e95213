"""
Random-interval posture nudges.

Low-urgency reminders sent every 15-45 minutes (random) while the user is in
a work period. Not throttled by the backoff engine; only meeting-mute applies.
"""

import random
import time
import threading
from dataclasses import dataclass, replace
from typing import Optional, Callable, Dict, Any, List, Tuple

from .nudge_config import NudgeConfig
from .notifications import NotificationDispatcher
from .calendar_oracle import CalendarOracle, meeting_muted
from .event_logger import EventLogger
from .ticker import Ticker, TickerFactory


NUDGE_MESSAGES: List[Tuple[str, str]] = [
    ("Posture Check", "Time for a quick posture check!"),
    ("Posture Reminder", "How's your posture looking?"),
    ("Posture Nudge", "Stretch and reset your posture for a productivity boost!"),
    ("Posture Nudge", "A quick posture check can help you stay healthy!"),
]


@dataclass
class NudgeState:
    next_nudge_interval_sec: float = 0.0
    last_nudge_time: Optional[float] = None


class PostureNudgeScheduler:
    """
    Sends randomly spaced posture nudges during work periods.

    The work-period predicate comes from the session scheduler
    (Pomodoro: focus sessions only; simple mode: always).
    """

    def __init__(
        self,
        config: Optional[NudgeConfig] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        is_work_period: Optional[Callable[[], bool]] = None,
        calendar: Optional[CalendarOracle] = None,
        calendar_filter: bool = True,
        event_logger: Optional[EventLogger] = None,
        clock=time.time,
        rng: Optional[random.Random] = None,
        ticker_factory: TickerFactory = Ticker,
        enabled: bool = False,
        verbose: bool = False
    ):
        """
        Initialize nudge scheduler.

        Args:
            config: Nudge configuration
            dispatcher: Notification dispatcher
            is_work_period: Predicate for "user is working right now"
            calendar: Calendar oracle for meeting-mute
            calendar_filter: Mute nudges while the calendar reports busy
            event_logger: Event logger
            clock: Time source (unix seconds)
            rng: Random source for intervals and messages
            ticker_factory: Creates the 60s check ticker
            enabled: Initial on/off (the timer starts with start())
            verbose: Print decisions to the console
        """
        self.config = config or NudgeConfig()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.is_work_period = is_work_period or (lambda: True)
        self.calendar = calendar
        self.calendar_filter = calendar_filter
        self.event_logger = event_logger
        self.clock = clock
        self.rng = rng or random.Random()
        self.ticker_factory = ticker_factory
        self.verbose = verbose

        self._lock = threading.RLock()
        self._state = NudgeState()
        self._enabled = enabled
        self._ticker: Optional[Ticker] = None
        self._ticker_generation = 0

    @property
    def state(self) -> NudgeState:
        with self._lock:
            return replace(self._state)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool):
        """Turn nudges on (draws an interval, starts the timer) or off."""
        with self._lock:
            self._enabled = enabled
            if enabled:
                self.start()
            else:
                self.stop()

        if self.verbose:
            print(f"  [NUDGE] Posture nudges enabled: {enabled}")

    def draw_interval(self) -> float:
        """Draw the next nudge interval uniformly from [min, max]."""
        with self._lock:
            self._state.next_nudge_interval_sec = self.rng.uniform(
                self.config.min_interval_sec,
                self.config.max_interval_sec
            )
            return self._state.next_nudge_interval_sec

    def start(self):
        """(Re)start the check timer with a fresh interval. No-op while disabled."""
        with self._lock:
            if not self._enabled:
                return

            self.stop()
            interval = self.draw_interval()
            self._ticker_generation += 1
            generation = self._ticker_generation
            self._ticker = self.ticker_factory(
                self.config.check_interval_sec,
                lambda: self._on_timer(generation),
                "posture-nudge"
            )
            self._ticker.start()

        if self.verbose:
            print(f"  [NUDGE] Next nudge in {interval / 60:.0f} minutes")

    def stop(self):
        """Cancel the check timer."""
        with self._lock:
            if self._ticker:
                self._ticker.cancel()
                self._ticker = None
            self._ticker_generation += 1

    def is_active(self) -> bool:
        return self._ticker is not None

    def _on_timer(self, generation: int):
        with self._lock:
            if generation != self._ticker_generation:
                return
            self.check()

    def check(self) -> bool:
        """
        Send a nudge if one is due.

        Returns:
            True if a nudge was dispatched
        """
        with self._lock:
            if not self._enabled:
                return False

            if not self.is_work_period():
                return False

            now = self.clock()
            last = self._state.last_nudge_time
            if last is not None and now - last < self._state.next_nudge_interval_sec:
                return False

            if meeting_muted(self.calendar, self.calendar_filter):
                if self.event_logger:
                    self.event_logger.log_suppressed("nudge", "posture nudge", "meeting")
                return False

            title, body = self.rng.choice(NUDGE_MESSAGES)
            self._state.last_nudge_time = now
            interval = self.draw_interval()

        self.dispatcher.dispatch(title=title, message=body, source="nudge")

        if self.verbose:
            print(f"  [NUDGE] Sent '{title}', next in {interval / 60:.0f} minutes")
        return True

    def get_nudge_status(self) -> Dict[str, Any]:
        """Diagnostics for the status bus."""
        with self._lock:
            status = {
                "enabled": self._enabled,
                "next_interval_sec": self._state.next_nudge_interval_sec,
                "last_nudge_sec_ago": None,
                "next_nudge_in_sec": None
            }
            if self._state.last_nudge_time is not None:
                since = self.clock() - self._state.last_nudge_time
                status["last_nudge_sec_ago"] = since
                status["next_nudge_in_sec"] = max(0.0, self._state.next_nudge_interval_sec - since)
            return status
