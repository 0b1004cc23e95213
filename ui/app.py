"""
SitStand Coach Streamlit UI - Live status with IPC bridge
Reads storage/status.json written by the runner; starts/stops the runner
through the ServiceManager.
"""
import streamlit as st
import time
import json
from pathlib import Path
import pandas as pd
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from sitstand import ConfigManager, EventLogger, StatsService, AggregationPeriod, get_service_manager
from streamlit_autorefresh import st_autorefresh

# Page config
st.set_page_config(page_title="SitStand Coach", page_icon="🧍", layout="wide")

# CSS
st.markdown("""
<style>
.status-sitting { color: #1f77b4; font-weight: bold; }
.status-standing { color: #28a745; font-weight: bold; }
.status-break { color: #ff7f0e; font-weight: bold; }
.status-paused { color: #6c757d; font-weight: bold; }
.waiting-banner {
    background-color: #fff3cd;
    border: 1px solid #ffc107;
    color: #856404;
    padding: 1rem;
    border-radius: 0.5rem;
    margin: 1rem 0;
}
</style>
""", unsafe_allow_html=True)

# Auto-refresh every 1 second
st_autorefresh(interval=1000, key="datarefresh")

# Initialize session state
if 'config_manager' not in st.session_state:
    st.session_state.config_manager = ConfigManager()
if 'event_logger' not in st.session_state:
    st.session_state.event_logger = EventLogger()
if 'stats' not in st.session_state:
    st.session_state.stats = StatsService()

service = get_service_manager()

st.title("🧍 SitStand Coach")
st.caption("Sit/stand and Pomodoro timer with posture reminders")


def load_live_status():
    """Load live status from status.json"""
    status_file = Path("storage/status.json")

    if not status_file.exists():
        return None, "File not found"

    try:
        # Check if file is stale (>3 seconds old)
        age = time.time() - status_file.stat().st_mtime
        if age > 3.0:
            return None, f"Stale ({age:.1f}s old)"

        with open(status_file, 'r') as f:
            return json.load(f), None
    except (OSError, json.JSONDecodeError) as e:
        return None, str(e)


# Service Section
st.header("⚙️ Service")
col1, col2, col3 = st.columns(3)
running = service.is_running()
col1.metric("Runner", f"PID {service.get_pid()}" if running else "Stopped")

config, _, _ = st.session_state.config_manager.load_config()
if col2.button("▶️ Start", disabled=running):
    service.start_background(pomodoro=config.pomodoro_enabled)
if col3.button("⏹ Stop", disabled=not running):
    service.stop_background()

with st.expander("📜 Runner Log"):
    st.code(service.tail_logs(20))

st.divider()

status, error = load_live_status()

# Status Section
st.header("📊 Live Status")

if error:
    st.markdown(f"""
    <div class="waiting-banner">
        <strong>⏳ Waiting for the runner...</strong><br>
        Reason: {error}<br>
        <br>
        Start it above, or run in a terminal:<br>
        <code>python dev_runner.py</code>
    </div>
    """, unsafe_allow_html=True)
elif not status['running']:
    st.markdown('<p class="status-paused">⏹ STOPPED</p>', unsafe_allow_html=True)
else:
    label = status['label'].upper().replace("/", " · ")
    if status['awaiting_manual_start']:
        st.markdown(f'<p class="status-paused">⏭ {label} COMPLETE - Ready to start next phase</p>',
                    unsafe_allow_html=True)
    elif status['paused']:
        st.markdown(f'<p class="status-paused">⏸ PAUSED - {label}</p>', unsafe_allow_html=True)
    elif status['session_type'] != 'focus':
        st.markdown(f'<p class="status-break">☕ {label}</p>', unsafe_allow_html=True)
    else:
        st.markdown(f'<p class="status-{status["phase"]}">● {label}</p>', unsafe_allow_html=True)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Remaining", status['remaining_text'])
    col2.metric("Mode", "Pomodoro" if status['pomodoro_enabled'] else "Simple")
    col3.metric("Focus Sessions", status['completed_focus_sessions'])
    col4.metric("Meeting", "Yes" if status['in_meeting'] else "No")

    if status['meeting']:
        st.info(f"📅 In **{status['meeting']['title']}** until {status['meeting']['ends_at']} - notifications muted")

    # Posture status
    st.subheader("Posture")
    backoff = status['backoff']
    nudges = status['nudges']

    status_parts = []
    if backoff.get('tracking_enabled'):
        status_parts.append(f"🔔 Alerts sent: {backoff['notification_count']}")
        if backoff['wait_remaining_sec'] > 0:
            status_parts.append(f"🔼 Backoff: {backoff['wait_remaining_sec'] / 60:.1f}m")
        if backoff['good_posture_sec'] is not None:
            status_parts.append(f"✅ Good posture: {backoff['good_posture_sec'] / 60:.1f}m")
    if nudges.get('enabled') and nudges['next_nudge_in_sec'] is not None:
        status_parts.append(f"📢 Next nudge: {nudges['next_nudge_in_sec'] / 60:.1f}m")

    if status_parts:
        st.info(" | ".join(status_parts))
    else:
        st.success("No posture alerts pending")

st.divider()

# Settings Section
st.header("⏱ Intervals")
scheduler_config, backoff_config, nudge_config = st.session_state.config_manager.load_config()

pomodoro = st.toggle("Pomodoro mode", value=scheduler_config.pomodoro_enabled)
col1, col2 = st.columns(2)
sitting = col1.slider("Sitting (min)", 5, 120, int(scheduler_config.sitting_interval_sec / 60), 5)
standing = col2.slider("Standing (min)", 5, 60, int(scheduler_config.standing_interval_sec / 60), 5)

col1, col2, col3 = st.columns(3)
focus = col1.slider("Focus (min)", 5, 90, int(scheduler_config.focus_interval_sec / 60), 5)
short_break = col2.slider("Short break (min)", 1, 30, int(scheduler_config.short_break_interval_sec / 60), 1)
long_break = col3.slider("Long break (min)", 5, 60, int(scheduler_config.long_break_interval_sec / 60), 5)

col1, col2, col3, col4 = st.columns(4)
auto_start = col1.checkbox("Auto-start next phase", value=scheduler_config.auto_start_enabled)
calendar_filter = col2.checkbox("Mute during meetings", value=scheduler_config.calendar_filter)
nudges_enabled = col3.checkbox("Posture nudges", value=scheduler_config.posture_nudges_enabled)
tracking = col4.checkbox("Posture alerts", value=scheduler_config.posture_tracking_enabled)

if st.button("💾 Save Settings"):
    scheduler_config.pomodoro_enabled = pomodoro
    scheduler_config.sitting_interval_sec = sitting * 60
    scheduler_config.standing_interval_sec = standing * 60
    scheduler_config.focus_interval_sec = focus * 60
    scheduler_config.short_break_interval_sec = short_break * 60
    scheduler_config.long_break_interval_sec = long_break * 60
    scheduler_config.auto_start_enabled = auto_start
    scheduler_config.calendar_filter = calendar_filter
    scheduler_config.posture_nudges_enabled = nudges_enabled
    scheduler_config.posture_tracking_enabled = tracking
    st.session_state.config_manager.save_config(scheduler_config, backoff_config, nudge_config)
    st.success("✅ Saved! Restart the runner to apply.")

st.divider()

# Stats Section
st.header("📈 Activity")
period_name = st.radio("Period", ["day", "week", "month"], horizontal=True)
summary = st.session_state.stats.summarize(AggregationPeriod(period_name))

col1, col2, col3, col4, col5 = st.columns(5)
col1.metric("Focus", f"{summary.focus_seconds / 60:.0f}m")
col2.metric("Sitting", f"{summary.sitting_seconds / 60:.0f}m")
col3.metric("Standing", f"{summary.standing_seconds / 60:.0f}m")
col4.metric("Breaks", f"{summary.breaks_taken} / {summary.breaks_taken + summary.breaks_skipped}")
col5.metric("Posture Alerts", summary.posture_alerts)

breakdown = st.session_state.stats.daily_breakdown(7)
st.bar_chart(breakdown[["focus_minutes"]])

st.divider()

# Event Log
st.header("📋 Event Log")
events = st.session_state.event_logger.get_recent_events(100)
if events:
    df = pd.DataFrame(events)
    st.dataframe(df[['timestamp', 'event_type', 'source', 'reason']].tail(20), use_container_width=True)
else:
    st.info("No events yet")

if st.button("🗑️ Purge All Data"):
    st.session_state.event_logger.purge_logs()
    st.session_state.stats.purge()
    st.session_state.config_manager.purge_config()
    st.success("✅ Purged!")

st.caption("SitStand Coach v1")
