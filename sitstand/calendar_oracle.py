"""
Calendar "busy right now" oracle for meeting-mute.

The coach only asks is_currently_busy(); this module keeps a cached list of
upcoming timed events and answers from that cache. The cache is refreshed
from an event source every 15 minutes over a 4 hour look-ahead window.
"""

import json
import time
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, List, Callable, Tuple


@dataclass
class CalendarEvent:
    """A calendar entry. Only timed (non all-day) events count as busy."""
    title: str
    start: datetime
    end: datetime
    all_day: bool = False

    def is_active(self, now: datetime) -> bool:
        return self.start <= now < self.end


# (window_start, window_end) -> events overlapping the window
EventSource = Callable[[datetime, datetime], List[CalendarEvent]]


class CalendarOracle:
    """
    Base oracle: never busy.

    Used when calendar access is not configured or not authorized, which the
    scheduler treats exactly like meeting-mute being off.
    """

    def is_currently_busy(self) -> bool:
        return False

    def current_event(self) -> Optional[CalendarEvent]:
        return None


class CachedCalendarOracle(CalendarOracle):
    """
    Oracle backed by a periodically refreshed event cache.

    Reads are cheap: the source is only consulted when the cache is older than
    refresh_interval_sec. A failing source keeps the previous cache.
    """

    def __init__(
        self,
        source: EventSource,
        refresh_interval_sec: float = 15 * 60,
        lookahead_hours: float = 4.0,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize cached oracle.

        Args:
            source: Function returning events in a time window
            refresh_interval_sec: Cache lifetime (default 15 min)
            lookahead_hours: Window fetched on each refresh
            clock: Time source (unix seconds)
        """
        self.source = source
        self.refresh_interval_sec = refresh_interval_sec
        self.lookahead_hours = lookahead_hours
        self.clock = clock

        self._lock = threading.Lock()
        self._busy_events: List[CalendarEvent] = []
        self._last_refresh: Optional[float] = None
        self.last_error: Optional[str] = None

    def refresh(self):
        """Reload timed events for the look-ahead window."""
        now_ts = self.clock()
        now = datetime.fromtimestamp(now_ts)
        end = now + timedelta(hours=self.lookahead_hours)

        try:
            events = self.source(now, end)
        except Exception as e:
            self.last_error = str(e)
            print(f"[CALENDAR] Failed to refresh events: {e}")
            with self._lock:
                # Retry on the next refresh interval, not on every read
                self._last_refresh = now_ts
            return

        with self._lock:
            self._busy_events = [e for e in events if not e.all_day]
            self._last_refresh = now_ts
        self.last_error = None

    def _ensure_fresh(self):
        last = self._last_refresh
        if last is None or self.clock() - last >= self.refresh_interval_sec:
            self.refresh()

    def current_event(self) -> Optional[CalendarEvent]:
        """Get the event happening right now, if any."""
        self._ensure_fresh()
        now = datetime.fromtimestamp(self.clock())
        with self._lock:
            for event in self._busy_events:
                if event.is_active(now):
                    return event
        return None

    def is_currently_busy(self) -> bool:
        return self.current_event() is not None

    def current_event_details(self) -> Optional[Tuple[str, str]]:
        """
        Get (title, end time) of the current event for display.

        Returns:
            Tuple of title and "HH:MM" end time, or None when free
        """
        event = self.current_event()
        if event is None:
            return None
        return (event.title or "Untitled Event", event.end.strftime("%H:%M"))

    def upcoming_events(self) -> List[CalendarEvent]:
        """Cached events that have not ended yet, soonest first."""
        self._ensure_fresh()
        now = datetime.fromtimestamp(self.clock())
        with self._lock:
            events = [e for e in self._busy_events if e.end > now]
        return sorted(events, key=lambda e: e.start)


class JsonFileEventSource:
    """
    Event source reading a JSON file.

    Format: [{"title": "...", "start": ISO, "end": ISO, "all_day": false}, ...]
    The file is re-read on every call so external edits are picked up on the
    next cache refresh.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def __call__(self, window_start: datetime, window_end: datetime) -> List[CalendarEvent]:
        if not self.path.exists():
            return []

        with open(self.path, "r") as f:
            raw_events = json.load(f)

        events = []
        for raw in raw_events:
            event = CalendarEvent(
                title=raw.get("title", ""),
                start=datetime.fromisoformat(raw["start"]),
                end=datetime.fromisoformat(raw["end"]),
                all_day=bool(raw.get("all_day", False))
            )
            # Keep events overlapping the window
            if event.start < window_end and event.end > window_start:
                events.append(event)
        return events


def meeting_muted(oracle: Optional[CalendarOracle], enabled: bool) -> bool:
    """
    Meeting-mute predicate shared by the scheduler, backoff and nudges.

    An unavailable oracle counts as "not busy" so the feature degrades to off.
    """
    if not enabled or oracle is None:
        return False
    try:
        return bool(oracle.is_currently_busy())
    except Exception as e:
        print(f"[CALENDAR] Busy check failed, treating as free: {e}")
        return False
