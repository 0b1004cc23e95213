"""
Event logger for scheduler and notification decisions.

Logs phase changes, delivered and suppressed notifications, and backoff
resets. Only text and timings are logged.
"""

import json
import time
import threading
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime


class EventLogger:
    """
    Logger for coach events.

    Logs to JSONL format (one JSON object per line). Writes are serialized
    with a lock because the scheduler, backoff and nudge tickers log from
    different threads.
    """

    def __init__(self, log_path: Optional[str] = None):
        """
        Initialize event logger.

        Args:
            log_path: Path to log file (default: storage/events.jsonl)
        """
        if log_path is None:
            log_path = "storage/events.jsonl"

        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def log_event(
        self,
        event_type: str,
        source: str,
        reason: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """
        Log a coach event.

        Args:
            event_type: Type of event (phase_switched, notified, suppressed, etc.)
            source: Component that produced it (scheduler, backoff, nudge)
            reason: Brief reason string
            metadata: Additional metadata (phase, counts, intervals, etc.)
        """
        event = {
            "timestamp": datetime.now().isoformat(),
            "unix_time": time.time(),
            "event_type": event_type,
            "source": source,
            "reason": reason,
            "metadata": metadata or {}
        }

        try:
            with self._lock:
                with open(self.log_path, "a") as f:
                    f.write(json.dumps(event) + "\n")
        except OSError as e:
            print(f"[EVENT_LOG] Failed to write event: {e}")

    def log_phase_switch(
        self,
        from_state: str,
        to_state: str,
        reason: str,
        next_deadline: float
    ):
        """Log a phase / session transition."""
        self.log_event(
            event_type="phase_switched",
            source="scheduler",
            reason=reason,
            metadata={
                "from": from_state,
                "to": to_state,
                "next_deadline": next_deadline,
                "interval_sec": max(0.0, next_deadline - time.time())
            }
        )

    def log_notification(
        self,
        source: str,
        title: str,
        delivered: bool,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Log a notification delivery attempt."""
        self.log_event(
            event_type="notified" if delivered else "delivery_failed",
            source=source,
            reason=title,
            metadata=metadata
        )

    def log_suppressed(
        self,
        source: str,
        reason: str,
        suppression_type: str
    ):
        """Log a suppressed notification (meeting, backoff, etc.)."""
        self.log_event(
            event_type="suppressed",
            source=source,
            reason=reason,
            metadata={"suppression_type": suppression_type}
        )

    def log_backoff_reset(self, good_posture_sec: float):
        """Log a backoff reset after sustained good posture."""
        self.log_event(
            event_type="backoff_reset",
            source="backoff",
            reason="Sustained good posture",
            metadata={"good_posture_sec": good_posture_sec}
        )

    def get_recent_events(self, limit: int = 100) -> list:
        """
        Get recent events from log.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of event dictionaries
        """
        if not self.log_path.exists():
            return []

        events = []
        with open(self.log_path, "r") as f:
            for line in f:
                try:
                    events.append(json.loads(line.strip()))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]

    def purge_logs(self):
        """Delete all logged events."""
        if self.log_path.exists():
            self.log_path.unlink()
