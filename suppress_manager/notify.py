# suppress_manager/notify.py

from __future__ import annotations

import logging
from typing import Protocol

from .models import NotifyLevel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Notifier(Protocol):
    """User-facing notifications (toasts in the web UI)."""

    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        ...


class LogNotifier:
    """Notifier that just writes to the log; used when no UI is attached."""

    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), message)
