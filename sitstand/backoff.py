"""
Posture alert throttling.

Decides whether a posture alert is actually delivered based on:
- Meeting-mute (calendar busy)
- Exponential backoff since the last delivered alert
- Good posture reset (sustained good posture clears the backoff)

Alert text escalates with every delivered alert, from a gentle reminder to
a suggestion to take a break.
"""

import time
import threading
from dataclasses import dataclass, replace
from typing import Optional, Dict, Any, Tuple

from .phases import PostureEvent
from .nudge_config import BackoffConfig
from .notifications import NotificationDispatcher
from .calendar_oracle import CalendarOracle, meeting_muted
from .event_logger import EventLogger
from .stats import StatsService
from .ticker import Ticker, TickerFactory


# Indexed by min(notification_count, 4)
POSTURE_ALERT_MESSAGES = [
    ("Check Your Posture!", "Sit up straight to maintain good posture."),
    ("Posture Reminder", "You're still slouching. Let's straighten up!"),
    ("Posture Check Needed", "Your posture needs attention. Time to sit up straight."),
    ("Posture Alert", "You've been slouching for a while. Please adjust your posture."),
    ("Posture Warning", "Your posture has been poor for an extended period. Consider taking a break."),
]

STANDUP_MESSAGE = ("Great job!", "You stood up - keep moving!")


@dataclass
class BackoffState:
    """Backoff bookkeeping owned by the engine."""
    notification_count: int = 0
    last_notification_time: Optional[float] = None
    good_posture_start_time: Optional[float] = None
    is_tracking_good_posture: bool = False


class NotificationBackoffEngine:
    """
    Posture alert backoff engine.

    Consumes posture events, throttles alerts with exponential backoff and
    resets itself after sustained good posture. Delivery is fire-and-forget;
    the outcome is applied to the backoff state when the dispatcher reports
    back.
    """

    def __init__(
        self,
        config: Optional[BackoffConfig] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        calendar: Optional[CalendarOracle] = None,
        calendar_filter: bool = True,
        stats: Optional[StatsService] = None,
        event_logger: Optional[EventLogger] = None,
        clock=time.time,
        ticker_factory: TickerFactory = Ticker,
        tracking_enabled: bool = False,
        verbose: bool = False
    ):
        """
        Initialize backoff engine.

        Args:
            config: Backoff configuration
            dispatcher: Notification dispatcher
            calendar: Calendar oracle for meeting-mute
            calendar_filter: Mute alerts while the calendar reports busy
            stats: Stats sink (records delivered alerts)
            event_logger: Event logger
            clock: Time source (unix seconds)
            ticker_factory: Creates the 30s reset-check ticker
            tracking_enabled: Initial posture tracking state (the reset timer starts with start_reset_timer())
            verbose: Print decisions to the console
        """
        self.config = config or BackoffConfig()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.calendar = calendar
        self.calendar_filter = calendar_filter
        self.stats = stats
        self.event_logger = event_logger
        self.clock = clock
        self.ticker_factory = ticker_factory
        self.verbose = verbose

        self._lock = threading.RLock()
        self._state = BackoffState()
        self._tracking_enabled = tracking_enabled
        self._delivery_in_flight = False

        # Bumped whenever backoff state is reset, so late delivery results
        # from before the reset are ignored
        self._state_generation = 0

        self._reset_ticker: Optional[Ticker] = None
        self._reset_ticker_generation = 0

        self.last_decision: Optional[Dict[str, Any]] = None

    @property
    def state(self) -> BackoffState:
        """Copy of the current backoff state."""
        with self._lock:
            return replace(self._state)

    @property
    def tracking_enabled(self) -> bool:
        return self._tracking_enabled

    def backoff_seconds(self, n: int) -> float:
        """
        Minimum wait before alert number n (0-indexed).

        The first alert is always eligible. After that the wait grows by
        backoff_exponent per delivered alert, and is max_backoff_sec once the
        final message tier is reached: 0, 60, 180, 540, 300, 300, ...
        """
        if n <= 0:
            return 0.0

        cfg = self.config
        wait = cfg.base_backoff_sec * (cfg.backoff_exponent ** (n - 1))
        if n >= cfg.max_backoff_after_count:
            wait = min(wait, cfg.max_backoff_sec)
        return wait

    def _muted(self) -> bool:
        return meeting_muted(self.calendar, self.calendar_filter)

    def should_send_posture_alert(self) -> Dict[str, Any]:
        """
        Decide if a posture alert may be delivered now.

        Returns:
            Dictionary with decision and reason
        """
        with self._lock:
            if self._muted():
                return {
                    "should_send": False,
                    "suppression_reason": "meeting"
                }

            if self._delivery_in_flight:
                return {
                    "should_send": False,
                    "suppression_reason": "delivery_in_flight"
                }

            count = self._state.notification_count
            last = self._state.last_notification_time
            if count == 0 or last is None:
                return {
                    "should_send": True,
                    "suppression_reason": None
                }

            required = self.backoff_seconds(count)
            elapsed = self.clock() - last
            if elapsed < required:
                return {
                    "should_send": False,
                    "suppression_reason": f"backoff ({required - elapsed:.0f}s remaining of {required:.0f}s)"
                }

            return {
                "should_send": True,
                "suppression_reason": None
            }

    def notification_content(self, count: Optional[int] = None) -> Tuple[str, str]:
        """Title and body for the given (or current) alert count."""
        if count is None:
            count = self._state.notification_count
        return POSTURE_ALERT_MESSAGES[min(max(count, 0), len(POSTURE_ALERT_MESSAGES) - 1)]

    def send_posture_alert(self) -> bool:
        """
        Deliver a posture alert unless suppressed.

        Returns:
            True if the alert was handed to the dispatcher
        """
        with self._lock:
            decision = self.should_send_posture_alert()
            self.last_decision = decision

            if not decision["should_send"]:
                if self.event_logger:
                    self.event_logger.log_suppressed(
                        source="backoff",
                        reason="posture alert",
                        suppression_type=decision["suppression_reason"]
                    )
                if self.verbose:
                    print(f"  [BACKOFF] Alert suppressed: {decision['suppression_reason']}")
                return False

            title, body = self.notification_content()
            generation = self._state_generation
            self._delivery_in_flight = True

            if self.verbose:
                print(f"  [BACKOFF] Sending alert #{self._state.notification_count + 1}: {title}")

        self.dispatcher.dispatch(
            title=title,
            message=body,
            source="backoff",
            on_result=lambda delivered: self._on_alert_result(delivered, generation)
        )
        return True

    def _on_alert_result(self, delivered: bool, generation: int):
        """Apply a delivery outcome. Failed deliveries keep the same tier."""
        with self._lock:
            self._delivery_in_flight = False
            if not delivered or generation != self._state_generation:
                return

            self._state.notification_count += 1
            self._state.last_notification_time = self.clock()

        if self.stats:
            self.stats.record_posture_alert()

    def send_standup_notification(self) -> bool:
        """
        Congratulate the user for standing up.

        Subject to meeting-mute only, not to backoff.
        """
        if self._muted():
            if self.event_logger:
                self.event_logger.log_suppressed("backoff", "standup", "meeting")
            return False

        title, body = STANDUP_MESSAGE
        self.dispatcher.dispatch(title=title, message=body, source="standup")
        return True

    def start_tracking_good_posture(self):
        """Start tracking good posture - called when posture improves."""
        with self._lock:
            if not self._state.is_tracking_good_posture:
                self._state.good_posture_start_time = self.clock()
                self._state.is_tracking_good_posture = True

    def stop_tracking_good_posture(self):
        """Stop tracking good posture - called when posture becomes poor again."""
        with self._lock:
            if self._state.is_tracking_good_posture:
                self._state.good_posture_start_time = None
                self._state.is_tracking_good_posture = False

    def on_posture_event(self, event: PostureEvent):
        """
        Handle a posture event from the posture signal.

        Args:
            event: Posture transition or alert trigger
        """
        if event == PostureEvent.GOOD:
            self.start_tracking_good_posture()
        elif event == PostureEvent.POOR:
            self.stop_tracking_good_posture()
        elif event == PostureEvent.POOR_SUSTAINED:
            self.stop_tracking_good_posture()
            if self._tracking_enabled:
                self.send_posture_alert()
        elif event == PostureEvent.STOOD_UP:
            if self._tracking_enabled:
                self.send_standup_notification()

    def enable_posture_tracking(self):
        """Enable posture tracking: zero the backoff and start the reset timer."""
        with self._lock:
            self._state = BackoffState()
            self._state_generation += 1
            self._delivery_in_flight = False
            self._tracking_enabled = True
            self.start_reset_timer()

        if self.verbose:
            print("  [BACKOFF] Posture tracking enabled")

    def disable_posture_tracking(self):
        """
        Disable posture tracking.

        Stops the reset timer and clears good-posture tracking. Counters are
        kept: disabling is usually transient (e.g. headphones taken off).
        """
        with self._lock:
            self.stop_reset_timer()
            self._tracking_enabled = False
            self._state.is_tracking_good_posture = False
            self._state.good_posture_start_time = None

        if self.verbose:
            print("  [BACKOFF] Posture tracking disabled")

    def start_reset_timer(self):
        """(Re)start the periodic good-posture reset check."""
        with self._lock:
            self.stop_reset_timer()
            self._reset_ticker_generation += 1
            generation = self._reset_ticker_generation
            self._reset_ticker = self.ticker_factory(
                self.config.reset_check_interval_sec,
                lambda: self._on_reset_timer(generation),
                "backoff-reset"
            )
            self._reset_ticker.start()

    def stop_reset_timer(self):
        with self._lock:
            if self._reset_ticker:
                self._reset_ticker.cancel()
                self._reset_ticker = None
            self._reset_ticker_generation += 1

    def _on_reset_timer(self, generation: int):
        with self._lock:
            if generation != self._reset_ticker_generation:
                return
            self.check_backoff_reset()

    def check_backoff_reset(self) -> bool:
        """
        Reset backoff after sustained good posture.

        Returns:
            True if the backoff was reset
        """
        with self._lock:
            start = self._state.good_posture_start_time
            if not self._state.is_tracking_good_posture or start is None:
                return False

            good_duration = self.clock() - start
            if good_duration < self.config.reset_backoff_after_sec:
                return False

            self._state.notification_count = 0
            self._state.last_notification_time = None
            self._state_generation += 1

        if self.event_logger:
            self.event_logger.log_backoff_reset(good_duration)
        if self.verbose:
            print(f"  [BACKOFF] Backoff reset after {good_duration:.0f}s of good posture")
        return True

    def get_backoff_status(self) -> Dict[str, Any]:
        """
        Get current backoff status for diagnostics.

        Returns:
            Dictionary with count, wait and good posture tracking status
        """
        with self._lock:
            now = self.clock()
            state = self._state
            required = self.backoff_seconds(state.notification_count)

            status = {
                "tracking_enabled": self._tracking_enabled,
                "notification_count": state.notification_count,
                "required_wait_sec": required,
                "wait_remaining_sec": 0.0,
                "last_alert_sec_ago": None,
                "good_posture_sec": None
            }

            if state.last_notification_time is not None:
                since = now - state.last_notification_time
                status["last_alert_sec_ago"] = since
                status["wait_remaining_sec"] = max(0.0, required - since)

            if state.is_tracking_good_posture and state.good_posture_start_time is not None:
                status["good_posture_sec"] = now - state.good_posture_start_time

            return status
