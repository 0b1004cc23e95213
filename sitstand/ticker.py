"""
Repeating background ticker.

Each ticker runs its callback on its own daemon thread, one call at a time,
so a slow tick is never re-entered by the next one.
"""

import threading
from typing import Optional, Callable


class Ticker:
    """
    Calls a function every `interval_sec` seconds until cancelled.

    The first call happens one interval after start(). Errors raised by the
    callback are printed and the ticker keeps running.
    """

    def __init__(
        self,
        interval_sec: float,
        callback: Callable[[], None],
        name: str = "ticker"
    ):
        """
        Initialize ticker.

        Args:
            interval_sec: Seconds between calls
            callback: Function to call on every tick
            name: Thread name (shows up in diagnostics)
        """
        self.interval_sec = interval_sec
        self.callback = callback
        self.name = name

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start the ticker thread."""
        if self._thread is not None:
            return

        # Fresh event per run so a cancelled thread can never be revived
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name=self.name, daemon=True
        )
        self._thread.start()

    def cancel(self):
        """
        Stop ticking.

        Does not wait for an in-flight tick; owners guard their callbacks
        with a liveness check instead. Safe to call from inside the callback.
        """
        self._stop_event.set()
        self._thread = None

    def is_active(self) -> bool:
        """Check if the ticker is still scheduled."""
        return self._thread is not None and not self._stop_event.is_set()

    def _run(self, stop_event: threading.Event):
        """Tick loop (runs in background thread)."""
        while not stop_event.wait(self.interval_sec):
            try:
                self.callback()
            except Exception as e:
                # Best-effort: a failing tick must not kill the timer
                print(f"[TICKER] {self.name}: error in tick: {e}")


TickerFactory = Callable[[float, Callable[[], None], str], Ticker]
