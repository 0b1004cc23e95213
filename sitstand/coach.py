"""
Coach service: wires the scheduler, posture alerts, nudges and their
collaborators together.

One CoachService per process. The runner and the tests build it; the
Streamlit UI only talks to the runner through status.json and the
ServiceManager.
"""

import time
from pathlib import Path
from typing import Optional, Callable

from .phases import PostureEvent
from .scheduler_config import SchedulerConfig
from .nudge_config import BackoffConfig, NudgeConfig
from .config_manager import ConfigManager
from .event_logger import EventLogger
from .notifications import NotificationEngine, NotificationDispatcher
from .calendar_oracle import CalendarOracle
from .stats import StatsService
from .storage import SchedulerStore, SchedulerState
from .posture_signal import PostureSignal
from .backoff import NotificationBackoffEngine
from .nudges import PostureNudgeScheduler
from .scheduler import SessionScheduler
from .status_bus import StatusBus, create_snapshot_from_coach
from .ticker import Ticker, TickerFactory


class CoachService:
    """
    Composition root for the coach.

    Owns every component and the storage layout:
        storage/ui_config.json        settings
        storage/scheduler_state.json  scheduler snapshot
        storage/activity.jsonl        stats records
        storage/events.jsonl          event log
        storage/status.json           live status for the UI
    """

    def __init__(
        self,
        storage_dir: str = "storage",
        scheduler_config: Optional[SchedulerConfig] = None,
        backoff_config: Optional[BackoffConfig] = None,
        nudge_config: Optional[NudgeConfig] = None,
        engine=None,
        calendar: Optional[CalendarOracle] = None,
        clock: Callable[[], float] = time.time,
        ticker_factory: TickerFactory = Ticker,
        run_async: bool = True,
        persist_state: bool = True,
        verbose: bool = False
    ):
        """
        Initialize coach service.

        Configs not given explicitly are loaded from storage/ui_config.json
        (defaults when missing).

        Args:
            storage_dir: Directory for all storage files
            scheduler_config: Scheduler settings override
            backoff_config: Backoff settings override
            nudge_config: Nudge settings override
            engine: Notification sink (default: NotificationEngine)
            calendar: Calendar oracle for meeting-mute
            clock: Time source (unix seconds)
            ticker_factory: Creates all periodic tickers
            run_async: Deliver notifications on background threads
            persist_state: Save a scheduler snapshot after every change
            verbose: Print component decisions to the console
        """
        self.storage_dir = Path(storage_dir)
        self.verbose = verbose

        self.config_manager = ConfigManager(str(self.storage_dir / "ui_config.json"))
        loaded_scheduler, loaded_backoff, loaded_nudge = self.config_manager.load_config()
        scheduler_config = scheduler_config or loaded_scheduler
        backoff_config = backoff_config or loaded_backoff
        nudge_config = nudge_config or loaded_nudge

        self.event_logger = EventLogger(str(self.storage_dir / "events.jsonl"))
        self.dispatcher = NotificationDispatcher(
            engine=engine or NotificationEngine(),
            event_logger=self.event_logger,
            run_async=run_async
        )
        self.calendar = calendar
        self.stats = StatsService(str(self.storage_dir / "activity.jsonl"), clock=clock)
        self.store = SchedulerStore(str(self.storage_dir))
        self.posture_signal = PostureSignal()

        self.backoff = NotificationBackoffEngine(
            config=backoff_config,
            dispatcher=self.dispatcher,
            calendar=calendar,
            calendar_filter=scheduler_config.calendar_filter,
            stats=self.stats,
            event_logger=self.event_logger,
            clock=clock,
            ticker_factory=ticker_factory,
            tracking_enabled=scheduler_config.posture_tracking_enabled,
            verbose=verbose
        )

        # is_work_period is bound after the scheduler exists
        self.nudges = PostureNudgeScheduler(
            config=nudge_config,
            dispatcher=self.dispatcher,
            calendar=calendar,
            calendar_filter=scheduler_config.calendar_filter,
            event_logger=self.event_logger,
            clock=clock,
            ticker_factory=ticker_factory,
            enabled=scheduler_config.posture_nudges_enabled,
            verbose=verbose
        )

        self.scheduler = SessionScheduler(
            config=scheduler_config,
            dispatcher=self.dispatcher,
            calendar=calendar,
            stats=self.stats,
            nudges=self.nudges,
            backoff=self.backoff,
            event_logger=self.event_logger,
            clock=clock,
            ticker_factory=ticker_factory,
            verbose=verbose
        )
        self.nudges.is_work_period = self.scheduler.is_work_period

        self.posture_signal.subscribe(self.backoff.on_posture_event)
        if persist_state:
            self.scheduler.add_listener(self._persist)

        self.status_bus = StatusBus(str(self.storage_dir / "status.json"))
        self.status_bus.set_snapshot_provider(self.status_snapshot)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def restore_saved_state(self) -> bool:
        """
        Resume from the last persisted scheduler snapshot.

        Returns:
            True if a snapshot was restored
        """
        snapshot = self.store.load_snapshot()
        if snapshot is None:
            return False

        self.scheduler.restore(snapshot)
        return True

    def start_status_bus(self):
        self.status_bus.start()

    def shutdown(self):
        """Stop background work. The scheduler snapshot stays on disk."""
        self.status_bus.stop()
        self.scheduler.shutdown()

    def _persist(self, state: SchedulerState):
        self.store.save_snapshot(state)

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def start(self, sitting_interval: Optional[float] = None, standing_interval: Optional[float] = None):
        self.scheduler.start(sitting_interval, standing_interval)

    def stop(self):
        self.scheduler.stop()

    def pause(self):
        self.scheduler.pause()

    def resume(self):
        self.scheduler.resume()

    def restart(self):
        self.scheduler.restart()

    def skip_phase(self):
        self.scheduler.skip_phase()

    def publish_posture(self, event: PostureEvent):
        """Feed a posture event from an external analyzer."""
        self.posture_signal.publish(event)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_pomodoro_mode(self, enabled: bool):
        self.scheduler.set_pomodoro_mode(enabled)
        self.save_settings()

    def set_calendar_filter(self, enabled: bool):
        """Turn meeting-mute on or off for every component."""
        self.scheduler.update_config(calendar_filter=enabled)
        self.backoff.calendar_filter = enabled
        self.nudges.calendar_filter = enabled
        self.save_settings()

    def set_posture_tracking(self, enabled: bool):
        """Enable or disable posture alerts (resets the backoff when enabled)."""
        if enabled:
            self.backoff.enable_posture_tracking()
        else:
            self.backoff.disable_posture_tracking()
        self.scheduler.update_config(posture_tracking_enabled=enabled)
        self.save_settings()

    def set_posture_nudges(self, enabled: bool):
        """The nudge timer only runs while a session is running and unpaused."""
        self.nudges.set_enabled(enabled)
        if enabled and (not self.scheduler.is_running or self.scheduler.is_paused):
            self.nudges.stop()
        self.scheduler.update_config(posture_nudges_enabled=enabled)
        self.save_settings()

    def update_intervals(self, **intervals):
        """
        Change scheduler intervals or toggles (e.g. sitting_interval_sec=1800).

        Applies from the next phase on.
        """
        self.scheduler.update_config(**intervals)
        self.save_settings()

    def save_settings(self):
        try:
            self.config_manager.save_config(
                self.scheduler.snapshot().config,
                self.backoff.config,
                self.nudges.config
            )
        except OSError as e:
            print(f"[CONFIG] Failed to save settings: {e}")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status_snapshot(self):
        return create_snapshot_from_coach(
            self.scheduler,
            backoff=self.backoff,
            nudges=self.nudges,
            calendar=self.calendar
        )
