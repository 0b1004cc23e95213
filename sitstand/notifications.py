"""
macOS notification delivery.

Posts notifications through terminal-notifier, falling back to osascript.
On other platforms (or in dry-run) notifications are printed to the console.
Delivery is best-effort: failures return False and are never raised.
"""

import sys
import time
import threading
import subprocess
from typing import Optional, Callable, Dict, Any

from .event_logger import EventLogger


def is_macos() -> bool:
    return sys.platform == "darwin"


class NotificationEngine:
    """
    Notification sink.

    deliver() is the only method the coach relies on; it returns True when
    the notification was handed to the OS.
    """

    def __init__(self, app_name: str = "SitStand Coach", sound: bool = True, dry_run: bool = False):
        """
        Initialize notification engine.

        Args:
            app_name: Application name (console prefix on non-macOS)
            sound: Play the default notification sound
            dry_run: If True, print notifications instead of posting them
        """
        self.app_name = app_name
        self.sound = sound
        self.dry_run = dry_run
        self.last_notification: Optional[Dict[str, Any]] = None

    def deliver(
        self,
        title: str,
        message: str,
        subtitle: Optional[str] = None
    ) -> bool:
        """
        Post a notification.

        Args:
            title: Notification title
            message: Notification body
            subtitle: Optional subtitle

        Returns:
            True if posted successfully
        """
        if self.dry_run or not is_macos():
            line = f"  [NOTIFICATION] {self.app_name}: {title}"
            if subtitle:
                line += f" - {subtitle}"
            print(f"{line}\n    {message}")
            posted = True
        else:
            posted = self._post_with_terminal_notifier(title, message, subtitle)

        if posted:
            self.last_notification = {
                "title": title,
                "message": message,
                "posted_at": time.time()
            }
        return posted

    def _post_with_terminal_notifier(
        self,
        title: str,
        message: str,
        subtitle: Optional[str] = None
    ) -> bool:
        """
        Post notification using terminal-notifier.

        Install: brew install terminal-notifier
        Non-blocking: the process is left running after a short start check.
        """
        try:
            cmd = [
                "terminal-notifier",
                "-title", title,
                "-message", message,
            ]
            if self.sound:
                cmd.extend(["-sound", "default"])
            if subtitle:
                cmd.extend(["-subtitle", subtitle])

            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True
            )

            # Give it 0.1 seconds to detect immediate failures
            try:
                _, stderr = proc.communicate(timeout=0.1)
                if proc.returncode not in (0, None):
                    print(f"  [NOTIFICATION] terminal-notifier exited with {proc.returncode}: {stderr.strip()}")
                    return False
                if stderr:
                    print(f"  [NOTIFICATION] Warning: {stderr.strip()}")
            except subprocess.TimeoutExpired:
                # Still running - notification was posted
                pass

            return True

        except FileNotFoundError:
            return self._post_via_osascript(title, message, subtitle)
        except OSError as e:
            print(f"  [NOTIFICATION] Error: {e}")
            return False

    def _post_via_osascript(
        self,
        title: str,
        message: str,
        subtitle: Optional[str] = None
    ) -> bool:
        """Post notification using osascript (AppleScript)."""
        def quote(text: str) -> str:
            return text.replace("\\", "\\\\").replace('"', '\\"')

        script = f'display notification "{quote(message)}" with title "{quote(title)}"'
        if subtitle:
            script += f' subtitle "{quote(subtitle)}"'
        if self.sound:
            script += ' sound name "default"'

        try:
            result = subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                timeout=2.0
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError):
            print("  [NOTIFICATION] WARNING: Could not post notification (osascript failed)")
            return False


class NotificationDispatcher:
    """
    Fire-and-forget front end for a notification sink.

    The caller never waits for delivery. The outcome is reported back through
    an optional `on_result(delivered)` callback, which runs on the delivery
    thread; owners apply it to their state under their own lock.
    """

    def __init__(
        self,
        engine: Optional[NotificationEngine] = None,
        event_logger: Optional[EventLogger] = None,
        run_async: bool = True
    ):
        """
        Initialize dispatcher.

        Args:
            engine: Notification sink (anything with deliver(title, message, subtitle))
            event_logger: Optional event log for delivery outcomes
            run_async: Deliver on a background thread (False runs inline, used by tests)
        """
        self.engine = engine or NotificationEngine()
        self.event_logger = event_logger
        self.run_async = run_async

    def dispatch(
        self,
        title: str,
        message: str,
        subtitle: Optional[str] = None,
        source: str = "coach",
        on_result: Optional[Callable[[bool], None]] = None
    ):
        """
        Deliver a notification without blocking the caller.

        Args:
            title: Notification title
            message: Notification body
            subtitle: Optional subtitle
            source: Component name for the event log
            on_result: Called with True/False once delivery finished
        """
        if self.run_async:
            thread = threading.Thread(
                target=self._deliver,
                args=(title, message, subtitle, source, on_result),
                name=f"notify-{source}",
                daemon=True
            )
            thread.start()
        else:
            self._deliver(title, message, subtitle, source, on_result)

    def _deliver(
        self,
        title: str,
        message: str,
        subtitle: Optional[str],
        source: str,
        on_result: Optional[Callable[[bool], None]]
    ):
        try:
            delivered = bool(self.engine.deliver(title, message, subtitle))
        except Exception as e:
            print(f"  [NOTIFICATION] Delivery error ({source}): {e}")
            delivered = False

        if not delivered:
            print(f"  [NOTIFICATION] Failed to post '{title}' ({source})")

        if self.event_logger:
            self.event_logger.log_notification(source, title, delivered)

        if on_result:
            try:
                on_result(delivered)
            except Exception as e:
                print(f"  [NOTIFICATION] Result handler error ({source}): {e}")
