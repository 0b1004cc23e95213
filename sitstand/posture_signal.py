"""
Typed channel for posture-quality events.

The posture analyzer publishes PostureEvent values; the backoff engine and
any other interested component subscribe with a plain callback.
"""

import threading
from typing import Callable, List

from .phases import PostureEvent


PostureListener = Callable[[PostureEvent], None]


class PostureSignal:
    """
    One-way posture event stream.

    Listeners run synchronously on the publisher's thread, in subscription
    order. A failing listener is reported and does not stop delivery to the
    others.
    """

    def __init__(self):
        self._listeners: List[PostureListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: PostureListener):
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: PostureListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def publish(self, event: PostureEvent):
        """Deliver an event to every listener."""
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                print(f"[POSTURE] Listener error for {event.value}: {e}")
