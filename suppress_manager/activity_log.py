# suppress_manager/activity_log.py
"""
Activity logging for suppress_manager.

Every state change worth auditing goes through log_event(), which writes one
line to the "suppress_manager.activity" logger and keeps the most recent
events in memory for front-ends that want to show a history.
"""

from __future__ import annotations

import datetime as _dt
import logging
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

from rich.logging import RichHandler

ACTIVITY_LOGGER_NAME = "suppress_manager.activity"
MAX_RECENT_EVENTS = 200

_activity_logger = logging.getLogger(ACTIVITY_LOGGER_NAME)
_recent: Deque[Dict[str, Any]] = deque(maxlen=MAX_RECENT_EVENTS)


def log_event(event_type: str, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Record an activity event.

    Args:
        event_type: UPPER_SNAKE identifier, e.g. "CONFIG_SAVED"
        message: Human-readable summary
        data: JSON-serializable details

    Returns:
        The recorded event dict
    """
    event = {
        "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="seconds"),
        "event_type": event_type,
        "message": message,
        "data": dict(data or {}),
    }
    _recent.append(event)
    _activity_logger.info("[%s] %s", event_type, message, extra={"event": event})
    return event


def recent_events(event_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return recorded events, oldest first, optionally filtered by type."""
    if event_type is None:
        return list(_recent)
    return [e for e in _recent if e["event_type"] == event_type]


def clear_events() -> None:
    _recent.clear()


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> None:
    """
    Route warnings and activity events to the terminal. With `log_file`,
    everything down to DEBUG (device commands included) is also kept on disk.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else level)
    root.handlers.clear()

    terminal = RichHandler(show_time=False, show_path=False, rich_tracebacks=True)
    terminal.setLevel(level)
    root.addHandler(terminal)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        on_disk = logging.FileHandler(path, encoding="utf-8")
        on_disk.setLevel(logging.DEBUG)
        on_disk.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        root.addHandler(on_disk)

    # asyncio logs every subprocess transport at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)
