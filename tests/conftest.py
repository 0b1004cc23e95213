from typing import Callable, List, Optional

import pytest

from sitstand.calendar_oracle import CalendarOracle, CalendarEvent
from sitstand.notifications import NotificationDispatcher


class FakeClock:
    def __init__(self, start: float = 1_800_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTicker:
    """Ticker that only ticks when the test calls fire()."""

    def __init__(self, interval_sec: float, callback: Callable[[], None], name: str = "ticker") -> None:
        self.interval_sec = interval_sec
        self.callback = callback
        self.name = name
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def is_active(self) -> bool:
        return self.started and not self.cancelled

    def fire(self) -> None:
        self.callback()


class TickerRegistry:
    def __init__(self) -> None:
        self.created: List[ManualTicker] = []

    def __call__(self, interval_sec: float, callback: Callable[[], None], name: str = "ticker") -> ManualTicker:
        ticker = ManualTicker(interval_sec, callback, name)
        self.created.append(ticker)
        return ticker

    def active(self, name: str) -> Optional[ManualTicker]:
        for ticker in reversed(self.created):
            if ticker.name == name and ticker.is_active():
                return ticker
        return None


class RecordingEngine:
    def __init__(self) -> None:
        self.sent = []
        self.result = True

    def deliver(self, title: str, message: str, subtitle: Optional[str] = None) -> bool:
        self.sent.append({"title": title, "message": message, "subtitle": subtitle})
        return self.result


class FakeCalendar(CalendarOracle):
    def __init__(self) -> None:
        self.busy = False

    def is_currently_busy(self) -> bool:
        return self.busy

    def current_event(self) -> Optional[CalendarEvent]:
        return None


class RecordingStats:
    def __init__(self) -> None:
        self.phases = []
        self.alerts = 0

    def record_phase(self, session_type, phase, elapsed_seconds, skipped) -> None:
        self.phases.append((session_type, phase, elapsed_seconds, skipped))

    def record_posture_alert(self) -> None:
        self.alerts += 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tickers() -> TickerRegistry:
    return TickerRegistry()


@pytest.fixture
def engine() -> RecordingEngine:
    return RecordingEngine()


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def stats() -> RecordingStats:
    return RecordingStats()


@pytest.fixture
def dispatcher(engine) -> NotificationDispatcher:
    return NotificationDispatcher(engine=engine, run_async=False)
