#!/usr/bin/env python3
"""
SitStand Coach Runner
Runs the session scheduler in the foreground and prints its status
periodically for manual verification. Also used as the background service
process started by the Streamlit UI.

Usage:
    python dev_runner.py [--pomodoro] [--sitting MIN] [--standing MIN] [--dry-run]
"""

import argparse
import signal
import sys
import time

from sitstand import (
    CoachService,
    CachedCalendarOracle,
    JsonFileEventSource,
    NotificationEngine,
    PostureEvent,
    AggregationPeriod
)


def format_status_line(coach: CoachService) -> str:
    """Format a single line of scheduler status."""
    scheduler = coach.scheduler
    if not scheduler.is_running:
        return "[STOPPED]"

    if scheduler.awaiting_manual_start:
        state = "WAITING"
    elif scheduler.is_paused:
        state = "PAUSED"
    else:
        state = "RUNNING"

    line = f"[{state}] {scheduler.phase_label().upper()} | Remaining: {scheduler.remaining_time_string}"
    if scheduler.pomodoro_enabled:
        line += f" | Focus sessions: {scheduler.completed_focus_sessions}"
    return line


def print_posture_status(coach: CoachService):
    """Print backoff and nudge status."""
    parts = []

    backoff = coach.backoff.get_backoff_status()
    if backoff["tracking_enabled"]:
        parts.append(f"alerts {backoff['notification_count']}")
        if backoff["wait_remaining_sec"] > 0:
            parts.append(f"backoff {backoff['wait_remaining_sec']:.0f}s")
        if backoff["good_posture_sec"] is not None:
            parts.append(f"good posture {backoff['good_posture_sec'] / 60:.1f}m")

    nudges = coach.nudges.get_nudge_status()
    if nudges["enabled"] and nudges["next_nudge_in_sec"] is not None:
        parts.append(f"next nudge {nudges['next_nudge_in_sec'] / 60:.1f}m")

    if parts:
        print(f"  [POSTURE] {' | '.join(parts)}")


def print_summary(coach: CoachService):
    """Print today's activity summary."""
    summary = coach.stats.summarize(AggregationPeriod.DAY)
    print("Today's Activity:")
    print(f"  Focus: {summary.focus_seconds / 60:.0f}m")
    print(f"  Sitting: {summary.sitting_seconds / 60:.0f}m")
    print(f"  Standing: {summary.standing_seconds / 60:.0f}m")
    print(f"  Breaks: {summary.breaks_taken} taken, {summary.breaks_skipped} skipped")
    print(f"  Posture alerts: {summary.posture_alerts}")


def _raise_keyboard_interrupt(signum, frame):
    raise KeyboardInterrupt


def main():
    parser = argparse.ArgumentParser(description="SitStand Coach Runner")
    parser.add_argument("--pomodoro", action="store_true", help="Run in Pomodoro mode")
    parser.add_argument("--sitting", type=float, help="Sitting interval in minutes")
    parser.add_argument("--standing", type=float, help="Standing interval in minutes")
    parser.add_argument("--focus", type=float, help="Focus session length in minutes")
    parser.add_argument("--short-break", type=float, help="Short break length in minutes")
    parser.add_argument("--long-break", type=float, help="Long break length in minutes")
    parser.add_argument("--no-auto-start", action="store_true", help="Wait for a manual start after each phase")
    parser.add_argument("--no-calendar", action="store_true", help="Do not mute notifications during meetings")
    parser.add_argument("--events-file", type=str, help="JSON calendar file used for meeting-mute")
    parser.add_argument("--nudges", action="store_true", help="Enable random posture nudges")
    parser.add_argument("--posture-tracking", action="store_true",
                        help="Enable posture alerts (events read from stdin: good/poor/slouch/stood)")
    parser.add_argument("--restore", action="store_true", help="Resume the last saved session state")
    parser.add_argument("--dry-run", action="store_true", help="Print notifications instead of posting them")
    parser.add_argument("--storage", type=str, default="storage", help="Storage directory (default: storage)")
    parser.add_argument("--interval", type=float, default=5.0, help="Print interval in seconds (default: 5.0)")
    parser.add_argument("--verbose", action="store_true", help="Print every scheduler decision")
    args = parser.parse_args()

    calendar = None
    if args.events_file:
        calendar = CachedCalendarOracle(JsonFileEventSource(args.events_file))

    coach = CoachService(
        storage_dir=args.storage,
        engine=NotificationEngine(dry_run=args.dry_run),
        calendar=calendar,
        verbose=args.verbose
    )

    # Command-line options override the saved settings
    overrides = {}
    if args.sitting is not None:
        overrides["sitting_interval_sec"] = args.sitting * 60
    if args.standing is not None:
        overrides["standing_interval_sec"] = args.standing * 60
    if args.focus is not None:
        overrides["focus_interval_sec"] = args.focus * 60
    if args.short_break is not None:
        overrides["short_break_interval_sec"] = args.short_break * 60
    if args.long_break is not None:
        overrides["long_break_interval_sec"] = args.long_break * 60
    if args.no_auto_start:
        overrides["auto_start_enabled"] = False
    if overrides:
        coach.update_intervals(**overrides)

    if args.no_calendar:
        coach.set_calendar_filter(False)
    if args.pomodoro:
        coach.set_pomodoro_mode(True)
    if args.nudges:
        coach.set_posture_nudges(True)
    if args.posture_tracking:
        coach.set_posture_tracking(True)

    config = coach.scheduler.config
    print("=" * 80)
    print("SitStand Coach - Runner")
    print("=" * 80)
    if config.pomodoro_enabled:
        print(f"Mode: POMODORO (focus {config.focus_interval_sec / 60:.0f}m, "
              f"short break {config.short_break_interval_sec / 60:.0f}m, "
              f"long break {config.long_break_interval_sec / 60:.0f}m "
              f"every {config.intervals_before_long_break})")
    else:
        print(f"Mode: SIMPLE (sitting {config.sitting_interval_sec / 60:.0f}m, "
              f"standing {config.standing_interval_sec / 60:.0f}m)")
    print(f"Auto-start: {'on' if config.auto_start_enabled else 'off'}")
    print(f"Meeting-mute: {'on' if config.calendar_filter and calendar else 'off'}")
    print(f"Posture nudges: {'on' if coach.nudges.enabled else 'off'}")
    print(f"Posture alerts: {'on' if coach.backoff.tracking_enabled else 'off'}")
    if args.dry_run:
        print("Notifications: DRY RUN (printed only)")
    print()
    print("Press Ctrl+C to stop")
    print("=" * 80)
    print()

    # ServiceManager stops the runner with SIGTERM
    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)

    if not (args.restore and coach.restore_saved_state() and coach.scheduler.is_running):
        coach.start()

    coach.start_status_bus()
    print("Status bus started (publishing to storage/status.json)")

    if args.posture_tracking:
        _start_posture_reader(coach)

    try:
        last_print = 0.0
        while True:
            time.sleep(0.5)

            now = time.time()
            if now - last_print >= args.interval:
                print(format_status_line(coach))
                print_posture_status(coach)
                last_print = now

    except KeyboardInterrupt:
        print()
        print("=" * 80)
        print("Stopping runner...")
        coach.shutdown()
        print()
        print_summary(coach)
        print()
        print("Runner stopped cleanly. Session state saved.")
        print("=" * 80)
        sys.exit(0)


def _start_posture_reader(coach: CoachService):
    """
    Feed posture events typed on stdin (one per line) into the coach.

    Accepted words: good, poor, slouch (sustained poor posture), stood.
    """
    import threading

    words = {
        "good": PostureEvent.GOOD,
        "poor": PostureEvent.POOR,
        "slouch": PostureEvent.POOR_SUSTAINED,
        "stood": PostureEvent.STOOD_UP
    }

    def read_loop():
        for line in sys.stdin:
            event = words.get(line.strip().lower())
            if event is None:
                print(f"  [POSTURE] Unknown event '{line.strip()}' (use: {', '.join(words)})")
                continue
            coach.publish_posture(event)

    threading.Thread(target=read_loop, name="posture-stdin", daemon=True).start()


if __name__ == "__main__":
    main()
