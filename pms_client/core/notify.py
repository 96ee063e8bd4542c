import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """User-visible toast/banner sink supplied by the UI layer."""

    def notify(self, message: str, level: str = "info") -> None:
        ...


class LoggingNotifier:
    """Default notifier when no UI is attached: notifications go to the log."""

    _levels = {
        "success": logging.INFO,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def notify(self, message: str, level: str = "info") -> None:
        logger.log(self._levels.get(level, logging.INFO), "[%s] %s", level.upper(), message)
