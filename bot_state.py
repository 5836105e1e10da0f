# bot_state.py
# Shared dashboard state and mission log
# Every module logs through add_log so the web interface sees the same lines as the console

import time
from collections import deque

# --- Shared State & Mission Log ---
mission_log = deque(maxlen=50)
shared_state = {
    "status": "Idle",
    "log": [],
    "intent": "idle",
    "auth": "not_started",
    "health": None,
    "session_count": 0,
    "reconnect_count": 0,
}

_MARKERS = {
    "error": "❌",
    "success": "✅",
    "warning": "⚠️",
}


def add_log(message, log_type="info"):
    """Timestamp a line, keep it for the dashboard and print it."""
    timestamp = time.strftime('%H:%M:%S')
    formatted_message = f"[{timestamp}] {message}"
    mission_log.appendleft(formatted_message)
    shared_state["log"] = list(mission_log)

    marker = _MARKERS.get(log_type)
    if marker:
        print(f"{marker} {formatted_message}")
    else:
        print(formatted_message)


def update_state(**fields):
    """Update dashboard fields (status, intent, auth, health...)"""
    shared_state.update(fields)


def reset_state():
    """Clear the log and counters. Used between test runs."""
    mission_log.clear()
    shared_state.update({
        "status": "Idle",
        "log": [],
        "intent": "idle",
        "auth": "not_started",
        "health": None,
        "session_count": 0,
        "reconnect_count": 0,
    })
