import logging
import time
from typing import Callable, Optional

from app.config import settings

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Holds one transient notification that auto-dismisses after ``ttl_seconds``."""

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = settings.NOTIFICATION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._message: Optional[str] = None
        self._expires_at = 0.0
        self.history: list[str] = []

    def show(self, message: str) -> None:
        # A new message replaces the current one and restarts the timer
        self._message = message
        self._expires_at = self._clock() + self.ttl_seconds
        self.history.append(message)
        logger.debug("Notification shown: %s", message)

    def dismiss(self) -> None:
        self._message = None

    @property
    def current(self) -> Optional[str]:
        if self._message is not None and self._clock() >= self._expires_at:
            self._message = None
        return self._message

    @property
    def last(self) -> Optional[str]:
        return self.history[-1] if self.history else None
