"""
Activity statistics.

Every completed, skipped or stopped phase and every delivered posture alert
becomes one ActivityRecord in storage/activity.jsonl. Summaries for the
current day, week or month are aggregated with pandas.
"""

import json
import time
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Optional, Callable, Dict, Any

import pandas as pd

from .phases import Phase, SessionType


POSTURE_ALERT_KIND = "posture_alert"
RECORD_COLUMNS = ["timestamp", "kind", "seconds_elapsed", "posture_goal", "posture_reminders", "skipped"]


class AggregationPeriod(Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass
class ActivityRecord:
    """One row of activity history."""
    timestamp: str  # ISO format, local time
    kind: str  # focus | shortBreak | longBreak | posture_alert
    seconds_elapsed: float = 0.0
    posture_goal: str = "ignored"  # sitting | standing | ignored
    posture_reminders: int = 0
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StatsSummary:
    """Aggregated totals for one period."""
    period: AggregationPeriod
    focus_seconds: float = 0.0
    sitting_seconds: float = 0.0
    standing_seconds: float = 0.0
    breaks_taken: int = 0
    breaks_skipped: int = 0
    posture_alerts: int = 0


class StatsService:
    """
    Stats sink for the scheduler and the backoff engine.

    Recording never raises: a failed write is printed and dropped so the
    scheduler keeps ticking.
    """

    def __init__(
        self,
        log_path: Optional[str] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize stats service.

        Args:
            log_path: Path to activity file (default: storage/activity.jsonl)
            clock: Time source (unix seconds)
        """
        if log_path is None:
            log_path = "storage/activity.jsonl"

        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.clock = clock
        self._lock = threading.Lock()

    def record_phase(
        self,
        session_type: SessionType,
        phase: Optional[Phase],
        elapsed_seconds: float,
        skipped: bool
    ):
        """
        Record a finished phase.

        Args:
            session_type: FOCUS in simple mode, the Pomodoro session otherwise
            phase: Stance during the phase (None for Pomodoro breaks)
            elapsed_seconds: Time actually spent in the phase
            skipped: True if the user skipped a break
        """
        self._append(ActivityRecord(
            timestamp=self._now_iso(),
            kind=session_type.value,
            seconds_elapsed=max(0.0, float(elapsed_seconds)),
            posture_goal=phase.value if phase else "ignored",
            skipped=skipped
        ))

    def record_posture_alert(self):
        """Record one delivered posture alert."""
        self._append(ActivityRecord(
            timestamp=self._now_iso(),
            kind=POSTURE_ALERT_KIND,
            posture_reminders=1
        ))

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self.clock()).isoformat()

    def _append(self, record: ActivityRecord):
        try:
            with self._lock:
                with open(self.log_path, "a") as f:
                    f.write(json.dumps(record.to_dict()) + "\n")
        except OSError as e:
            print(f"[STATS] Failed to save activity record: {e}")

    def load_frame(self) -> pd.DataFrame:
        """
        Load all activity records.

        Returns:
            DataFrame with RECORD_COLUMNS and a parsed timestamp column
        """
        rows = []
        if self.log_path.exists():
            with open(self.log_path, "r") as f:
                for line in f:
                    try:
                        rows.append(json.loads(line.strip()))
                    except json.JSONDecodeError:
                        continue

        df = pd.DataFrame(rows, columns=RECORD_COLUMNS)
        df["timestamp"] = pd.to_datetime(df["timestamp"], format="ISO8601")
        df["skipped"] = df["skipped"].fillna(False).astype(bool)
        return df

    def period_start(self, period: AggregationPeriod) -> datetime:
        """Local start of the current day, week (Monday) or month."""
        now = datetime.fromtimestamp(self.clock())
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if period == AggregationPeriod.WEEK:
            return midnight - timedelta(days=midnight.weekday())
        if period == AggregationPeriod.MONTH:
            return midnight.replace(day=1)
        return midnight

    def summarize(self, period: AggregationPeriod = AggregationPeriod.DAY) -> StatsSummary:
        """
        Aggregate records since the start of the period.

        Focus time is split into sitting and standing by posture goal.
        Pomodoro breaks count as taken or skipped.
        """
        df = self.load_frame()
        df = df[df["timestamp"] >= pd.Timestamp(self.period_start(period))]

        focus = df[df["kind"] == SessionType.FOCUS.value]
        breaks = df[df["kind"].isin([SessionType.SHORT_BREAK.value, SessionType.LONG_BREAK.value])]
        alerts = df[df["kind"] == POSTURE_ALERT_KIND]

        return StatsSummary(
            period=period,
            focus_seconds=float(focus["seconds_elapsed"].sum()),
            sitting_seconds=float(focus.loc[focus["posture_goal"] == Phase.SITTING.value, "seconds_elapsed"].sum()),
            standing_seconds=float(focus.loc[focus["posture_goal"] == Phase.STANDING.value, "seconds_elapsed"].sum()),
            breaks_taken=int((~breaks["skipped"]).sum()),
            breaks_skipped=int(breaks["skipped"].sum()),
            posture_alerts=int(alerts["posture_reminders"].sum())
        )

    def daily_breakdown(self, days: int = 7) -> pd.DataFrame:
        """
        Per-day totals for the last `days` days (today included).

        Returns:
            DataFrame indexed by date with focus_minutes, breaks_taken and
            posture_alerts columns; days without activity are zero
        """
        start = self.period_start(AggregationPeriod.DAY) - timedelta(days=days - 1)
        index = [d.date() for d in pd.date_range(start=start, periods=days, freq="D")]

        df = self.load_frame()
        df = df[df["timestamp"] >= pd.Timestamp(start)].copy()
        df["date"] = df["timestamp"].dt.date

        focus = df[df["kind"] == SessionType.FOCUS.value].groupby("date")["seconds_elapsed"].sum() / 60.0
        breaks_mask = df["kind"].isin([SessionType.SHORT_BREAK.value, SessionType.LONG_BREAK.value]) & ~df["skipped"]
        breaks = df[breaks_mask].groupby("date").size()
        alerts = df[df["kind"] == POSTURE_ALERT_KIND].groupby("date")["posture_reminders"].sum()

        breakdown = pd.DataFrame({
            "focus_minutes": focus,
            "breaks_taken": breaks,
            "posture_alerts": alerts
        })
        return breakdown.reindex(index).fillna(0)

    def purge(self):
        """Delete all activity records."""
        if self.log_path.exists():
            self.log_path.unlink()
