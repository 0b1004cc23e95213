"""
Session scheduler: the sit/stand and Pomodoro phase state machine.

Modes:
- SIMPLE: sitting <-> standing with their own intervals
- POMODORO: focus -> short break (or long break every N focus sessions)
  -> focus, alternating the stance of consecutive focus sessions

A 1 Hz ticker polls the deadline. On expiry the scheduler checks
meeting-mute, notifies, records stats and either advances to the next phase
(auto-start) or parks paused until the user starts the next phase.

All guard violations are silent no-ops: callers see an unchanged state.
"""

import time
import threading
from dataclasses import fields, replace
from typing import Optional, Callable, List, Tuple

from .phases import Phase, SessionType
from .scheduler_config import SchedulerConfig
from .storage import SchedulerState
from .notifications import NotificationDispatcher
from .calendar_oracle import CalendarOracle, meeting_muted
from .event_logger import EventLogger
from .stats import StatsService
from .ticker import Ticker, TickerFactory


StateListener = Callable[[SchedulerState], None]

INTERVAL_FIELDS = (
    "sitting_interval_sec",
    "standing_interval_sec",
    "focus_interval_sec",
    "short_break_interval_sec",
    "long_break_interval_sec",
    "intervals_before_long_break",
)


def _is_positive(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


class SessionScheduler:
    """
    Phase/session timer with pause/resume accounting.

    Owns a SchedulerState exclusively. Every public operation and every tick
    runs under one re-entrant lock. Listeners receive a copy of the state
    after each mutation (persistence, status display).
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        calendar: Optional[CalendarOracle] = None,
        stats: Optional[StatsService] = None,
        nudges=None,
        backoff=None,
        event_logger: Optional[EventLogger] = None,
        clock: Callable[[], float] = time.time,
        ticker_factory: TickerFactory = Ticker,
        tick_interval_sec: float = 1.0,
        verbose: bool = False
    ):
        """
        Initialize scheduler.

        Args:
            config: Intervals and behaviour toggles (defaults if None)
            dispatcher: Notification dispatcher for phase notifications
            calendar: Calendar oracle for meeting-mute
            stats: Stats sink for phase records
            nudges: PostureNudgeScheduler whose timer follows start/stop
            backoff: NotificationBackoffEngine whose reset timer follows start/stop
            event_logger: Event logger
            clock: Time source (unix seconds)
            ticker_factory: Creates the deadline ticker
            tick_interval_sec: Deadline poll interval (1 Hz)
            verbose: Print transitions to the console
        """
        config = config or SchedulerConfig()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.calendar = calendar
        self.stats = stats
        self.nudges = nudges
        self.backoff = backoff
        self.event_logger = event_logger
        self.clock = clock
        self.ticker_factory = ticker_factory
        self.tick_interval_sec = tick_interval_sec
        self.verbose = verbose

        self._lock = threading.RLock()
        self._state = SchedulerState(pomodoro_enabled=config.pomodoro_enabled, config=config)
        self._listeners: List[StateListener] = []

        self._ticker: Optional[Ticker] = None
        self._ticker_generation = 0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> SchedulerConfig:
        return self._state.config

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def pomodoro_enabled(self) -> bool:
        return self._state.pomodoro_enabled

    @property
    def current_phase(self) -> Phase:
        return self._state.current_phase

    @property
    def current_session_type(self) -> SessionType:
        return self._state.current_session_type

    @property
    def next_deadline(self) -> float:
        return self._state.next_deadline

    @property
    def remaining_when_paused(self) -> float:
        return self._state.remaining_when_paused

    @property
    def completed_focus_sessions(self) -> int:
        return self._state.completed_focus_sessions

    @property
    def awaiting_manual_start(self) -> bool:
        """True when a phase expired with auto-start off ("ready to start next phase")."""
        return self._state.awaiting_manual_start

    def snapshot(self) -> SchedulerState:
        """Copy of the full scheduler state."""
        with self._lock:
            return self._state.copy()

    @property
    def current_interval(self) -> float:
        """Configured length of the current phase in seconds."""
        state = self._state
        cfg = state.config
        if state.pomodoro_enabled:
            if state.current_session_type == SessionType.SHORT_BREAK:
                return cfg.short_break_interval_sec
            if state.current_session_type == SessionType.LONG_BREAK:
                return cfg.long_break_interval_sec
            return cfg.focus_interval_sec

        if state.current_phase == Phase.STANDING:
            return cfg.standing_interval_sec
        return cfg.sitting_interval_sec

    @property
    def current_remaining_time(self) -> float:
        """Seconds left in the current phase (0 when not running)."""
        with self._lock:
            state = self._state
            if not state.is_running:
                return 0.0
            if state.is_paused:
                return max(0.0, state.remaining_when_paused)
            return max(0.0, state.next_deadline - self.clock())

    @property
    def remaining_time_string(self) -> str:
        """Remaining time as "12m 5s", "42s" or "0s"."""
        remaining = int(self.current_remaining_time)
        if remaining <= 0:
            return "0s"

        minutes = remaining // 60
        seconds = remaining % 60
        if minutes > 0:
            return f"{minutes}m {seconds}s"
        return f"{seconds}s"

    def phase_label(self) -> str:
        """Short label for logs and status, e.g. "focus/standing" or "sitting"."""
        state = self._state
        if state.pomodoro_enabled:
            if state.current_session_type == SessionType.FOCUS:
                return f"{state.current_session_type.value}/{state.current_phase.value}"
            return state.current_session_type.value
        return state.current_phase.value

    def is_work_period(self) -> bool:
        """
        Whether the user is in a work period.

        Only while running and not paused (a parked phase is paused).
        Pomodoro: focus sessions only. Simple mode: always.
        Reads without the lock so other components can call it from their
        own ticks.
        """
        state = self._state
        if not state.is_running or state.is_paused:
            return False
        if state.pomodoro_enabled:
            return state.current_session_type == SessionType.FOCUS
        return True

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: StateListener):
        """Register a callback that receives a state copy after every mutation."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: StateListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _publish(self):
        snapshot = self._state.copy()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                # Fire-and-forget: persistence or UI failures never stop the scheduler
                print(f"[SCHEDULER] State listener error: {e}")

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def start(
        self,
        sitting_interval: Optional[float] = None,
        standing_interval: Optional[float] = None
    ):
        """
        Start (or re-start) the session from its first phase.

        Args:
            sitting_interval: Overrides the configured sitting interval
            standing_interval: Overrides the configured standing interval
        """
        with self._lock:
            cfg = self._state.config
            sitting = cfg.sitting_interval_sec if sitting_interval is None else sitting_interval
            standing = cfg.standing_interval_sec if standing_interval is None else standing_interval
            if sitting <= 0 or standing <= 0:
                return

            if self._state.pomodoro_enabled and min(
                cfg.focus_interval_sec,
                cfg.short_break_interval_sec,
                cfg.long_break_interval_sec
            ) <= 0:
                return

            cfg.sitting_interval_sec = sitting
            cfg.standing_interval_sec = standing

            now = self.clock()
            self._cancel_ticker()

            state = self._state
            state.is_paused = False
            state.remaining_when_paused = 0.0
            state.awaiting_manual_start = False
            state.current_phase = Phase.SITTING
            state.current_session_type = SessionType.FOCUS
            state.phase_started_at = now
            state.next_deadline = now + self.current_interval
            state.is_running = True

            self._start_ticker()
            self._start_companions()

            if self.event_logger:
                self.event_logger.log_phase_switch("stopped", self.phase_label(), "started", state.next_deadline)
            if self.verbose:
                print(f"[SCHEDULER] Started: {self.phase_label()} for {self.current_interval / 60:.0f}m")

            self._publish()

    def stop(self):
        """Stop the session, record the current phase and reset to the baseline."""
        with self._lock:
            state = self._state
            if not state.is_running:
                return

            now = self.clock()
            if not state.awaiting_manual_start:
                # A parked phase was already recorded when it expired
                self._record_current_phase(skipped=False, now=now)

            self._cancel_ticker()
            self._stop_companions()

            label = self.phase_label()
            self._state = SchedulerState(pomodoro_enabled=state.pomodoro_enabled, config=state.config)

            if self.event_logger:
                self.event_logger.log_phase_switch(label, "stopped", "stopped", 0.0)
            if self.verbose:
                print("[SCHEDULER] Stopped")

            self._publish()

    def pause(self):
        """
        Freeze the remaining time and stop nudges.

        The ticker keeps running but ticks are ignored.
        """
        with self._lock:
            state = self._state
            if not state.is_running or state.is_paused:
                return

            state.remaining_when_paused = state.next_deadline - self.clock()
            state.is_paused = True
            if self.nudges is not None:
                self.nudges.stop()

            if self.verbose:
                print(f"[SCHEDULER] Paused with {max(0.0, state.remaining_when_paused):.0f}s left")

            self._publish()

    def resume(self):
        """
        Continue a paused session.

        A phase parked at expiry (auto-start off) starts the next phase instead.
        """
        with self._lock:
            state = self._state
            if not state.is_running or not state.is_paused:
                return

            now = self.clock()
            remaining = state.remaining_when_paused
            state.is_paused = False
            state.remaining_when_paused = 0.0

            if state.awaiting_manual_start:
                state.awaiting_manual_start = False
                self._switch_phase(now, reason="manual start")
            else:
                state.next_deadline = now + remaining

            if self.nudges is not None and self.nudges.enabled:
                self.nudges.start()

            if self.verbose:
                print(f"[SCHEDULER] Resumed: {self.phase_label()}, {state.next_deadline - now:.0f}s left")

            self._publish()

    def restart(self):
        """stop() then start(), only with valid sitting/standing intervals."""
        with self._lock:
            if not self._state.config.has_valid_simple_intervals():
                return
            self.stop()
            self.start()

    def skip_phase(self):
        """Jump to the next phase without a notification."""
        with self._lock:
            state = self._state
            if not state.is_running:
                return

            if state.is_paused:
                parked = state.awaiting_manual_start
                self.resume()
                if parked:
                    # resume() already moved past the expired phase
                    return

            now = self.clock()
            skipped = state.pomodoro_enabled and state.current_session_type.is_break
            self._record_current_phase(skipped=skipped, now=now)
            self._switch_phase(now, reason="skipped")

            self._publish()

    def set_pomodoro_mode(self, enabled: bool):
        """
        Switch between simple and Pomodoro mode.

        A running, unpaused session restarts the new mode's first interval;
        the time left in the previous mode is dropped.
        """
        with self._lock:
            state = self._state
            if state.pomodoro_enabled == enabled:
                return

            state.pomodoro_enabled = enabled
            state.config.pomodoro_enabled = enabled
            rebase = state.is_running and not state.is_paused
            now = self.clock()

            if enabled:
                state.completed_focus_sessions = 0
                state.current_session_type = SessionType.FOCUS
                if rebase:
                    state.next_deadline = now + state.config.focus_interval_sec
                    state.phase_started_at = now
            else:
                state.current_phase = Phase.SITTING
                if rebase:
                    state.next_deadline = now + state.config.sitting_interval_sec
                    state.phase_started_at = now

            if self.verbose:
                print(f"[SCHEDULER] Pomodoro mode {'enabled' if enabled else 'disabled'}")

            self._publish()

    def update_config(self, **changes):
        """
        Change configuration fields (intervals, auto-start, meeting-mute, ...).

        Interval changes apply from the next phase on. pomodoro_enabled is
        routed through set_pomodoro_mode(). Unknown keys are ignored; a
        non-positive interval rejects the whole update.
        """
        with self._lock:
            known = {f.name for f in fields(SchedulerConfig)}
            unknown = sorted(set(changes) - known)
            if unknown:
                print(f"[SCHEDULER] Ignoring unknown config keys: {', '.join(unknown)}")
                changes = {k: v for k, v in changes.items() if k in known}

            for name in INTERVAL_FIELDS:
                if name in changes and not _is_positive(changes[name]):
                    if self.verbose:
                        print(f"[SCHEDULER] Rejected config update: {name}={changes[name]!r}")
                    return

            pomodoro = changes.pop("pomodoro_enabled", None)
            if changes:
                self._state.config = replace(self._state.config, **changes)
                self._publish()
            if pomodoro is not None:
                self.set_pomodoro_mode(bool(pomodoro))

    def restore(self, snapshot: SchedulerState):
        """
        Adopt a persisted snapshot (app launch).

        The current configuration is kept; only runtime state is restored.
        A running snapshot restarts the ticker; a deadline that passed while
        the app was closed fires on the first tick.
        """
        with self._lock:
            self._cancel_ticker()
            self._stop_companions()

            config = self._state.config
            config.pomodoro_enabled = snapshot.pomodoro_enabled
            self._state = replace(snapshot.copy(), config=config)

            if self._state.is_running:
                self._start_ticker()
                self._start_companions()

            if self.verbose:
                status = "running" if self._state.is_running else "stopped"
                print(f"[SCHEDULER] Restored {status} state: {self.phase_label()}")

    def shutdown(self):
        """Cancel all timers, keeping the state for the next restore()."""
        with self._lock:
            self._cancel_ticker()
            self._stop_companions()

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self):
        """Check the deadline. Called every second by the ticker."""
        with self._lock:
            state = self._state
            if not state.is_running or state.is_paused:
                return

            now = self.clock()
            if now >= state.next_deadline:
                self._fire(now)

    def _on_timer(self, generation: int):
        with self._lock:
            if generation != self._ticker_generation:
                # Callback from a ticker cancelled by stop()/start()
                return
            self.tick()

    def _start_ticker(self):
        self._cancel_ticker()
        self._ticker_generation += 1
        generation = self._ticker_generation
        self._ticker = self.ticker_factory(
            self.tick_interval_sec,
            lambda: self._on_timer(generation),
            "session-tick"
        )
        self._ticker.start()

    def _cancel_ticker(self):
        if self._ticker:
            self._ticker.cancel()
            self._ticker = None
        self._ticker_generation += 1

    def _start_companions(self):
        if self.nudges is not None and self.nudges.enabled and not self._state.is_paused:
            self.nudges.start()
        if self.backoff is not None and self.backoff.tracking_enabled:
            self.backoff.start_reset_timer()

    def _stop_companions(self):
        if self.nudges is not None:
            self.nudges.stop()
        if self.backoff is not None:
            self.backoff.stop_reset_timer()

    def _fire(self, now: float):
        """Deadline expired: notify, record, then advance or park."""
        state = self._state
        cfg = state.config

        if meeting_muted(self.calendar, cfg.calendar_filter):
            if self.event_logger:
                self.event_logger.log_suppressed("scheduler", self.phase_label(), "meeting")
            if self.verbose:
                print(f"[SCHEDULER] {self.phase_label()} complete during a meeting, switching silently")
            self._switch_phase(now, reason="phase complete (meeting)")
            self._publish()
            return

        title, subtitle, body = self.notification_content()
        self.dispatcher.dispatch(title=title, message=body, subtitle=subtitle, source="scheduler")

        self._record_current_phase(skipped=False, now=now)

        if cfg.auto_start_enabled:
            self._switch_phase(now, reason="phase complete")
            self._publish()
        else:
            state.awaiting_manual_start = True
            self.pause()
            if self.verbose:
                print(f"[SCHEDULER] {self.phase_label()} complete, waiting for manual start")

    def _switch_phase(self, now: float, reason: str):
        """Advance to the next phase/session and compute its deadline."""
        state = self._state
        cfg = state.config
        previous = self.phase_label()

        if state.pomodoro_enabled:
            if state.current_session_type == SessionType.FOCUS:
                state.completed_focus_sessions += 1
                if state.completed_focus_sessions % cfg.intervals_before_long_break == 0:
                    state.current_session_type = SessionType.LONG_BREAK
                    interval = cfg.long_break_interval_sec
                else:
                    state.current_session_type = SessionType.SHORT_BREAK
                    interval = cfg.short_break_interval_sec
            else:
                state.current_session_type = SessionType.FOCUS
                # Alternate stance across consecutive focus sessions
                state.current_phase = state.current_phase.toggled()
                interval = cfg.focus_interval_sec
        else:
            if state.current_phase == Phase.SITTING:
                state.current_phase = Phase.STANDING
                interval = cfg.standing_interval_sec
            else:
                state.current_phase = Phase.SITTING
                interval = cfg.sitting_interval_sec

        state.next_deadline = now + interval
        state.phase_started_at = now

        if self.event_logger:
            self.event_logger.log_phase_switch(previous, self.phase_label(), reason, state.next_deadline)
        if self.verbose:
            print(f"[SCHEDULER] {previous} -> {self.phase_label()} ({reason}), next in {interval / 60:.0f}m")

    def _record_current_phase(self, skipped: bool, now: float):
        """Send the elapsed time of the current phase to the stats sink."""
        state = self._state
        if self.stats is None or state.phase_started_at is None:
            return

        elapsed = max(now - state.phase_started_at, 0.0)
        if state.pomodoro_enabled:
            session_type = state.current_session_type
            phase = state.current_phase if session_type == SessionType.FOCUS else None
        else:
            session_type = SessionType.FOCUS
            phase = state.current_phase

        try:
            self.stats.record_phase(session_type, phase, elapsed, skipped)
        except Exception as e:
            print(f"[SCHEDULER] Failed to record stats: {e}")

    def notification_content(self) -> Tuple[str, str, str]:
        """
        Title, subtitle and body for the phase that just ended.

        The body tells the user to open the menu when auto-start is off.
        """
        state = self._state
        cfg = state.config
        auto = cfg.auto_start_enabled

        if state.pomodoro_enabled:
            if state.current_session_type == SessionType.FOCUS:
                stance = state.current_phase.value
                return (
                    "Focus Session Complete!",
                    f"You've been {stance} for {int(cfg.focus_interval_sec / 60)} minutes.",
                    "Time for a break." if auto else "Time for a break. Open the menu to start your break."
                )
            if state.current_session_type == SessionType.SHORT_BREAK:
                return (
                    "Break Complete!",
                    f"You've rested for {int(cfg.short_break_interval_sec / 60)} minutes.",
                    "Ready for your next focus session?" if auto
                    else "Ready for your next focus session? Open the menu to start."
                )
            return (
                "Long Break Complete!",
                f"You've completed {state.completed_focus_sessions} focus sessions.",
                "Great work! Ready for more?" if auto else "Great work! Ready for more? Open the menu to start."
            )

        if state.current_phase == Phase.SITTING:
            return (
                "Time to Stand Up!",
                f"You've been sitting for {int(cfg.sitting_interval_sec / 60)} minutes.",
                "A quick stretch will do you good." if auto
                else "A quick stretch will do you good. Open the menu to start your standing session."
            )
        return (
            "Time to Sit Down",
            f"You've been standing for {int(cfg.standing_interval_sec / 60)} minutes.",
            "Time to relax for a bit." if auto
            else "Time to relax for a bit. Open the menu to start your sitting session."
        )
