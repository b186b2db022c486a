"""
Compensating actions for provisioning that spans several systems.

Identity principal, profile document and image blob live in different
stores with no shared transaction. Each completed step registers an undo
action; on failure the actions run in reverse order. Compensation is
best-effort: an undo that fails is logged and the rest still run.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


class CompensationStack:
    def __init__(self, label: str = "provisioning"):
        self.label = label
        self._actions: List[Tuple[str, Callable[[], None]]] = []

    def __len__(self) -> int:
        return len(self._actions)

    def push(self, name: str, undo: Callable[[], None]) -> None:
        self._actions.append((name, undo))
        logger.debug("%s: registered compensation %s (depth=%s)", self.label, name, len(self._actions))

    def clear(self) -> None:
        """Commits the sequence; nothing will be undone afterwards."""
        self._actions.clear()

    def unwind(self) -> list[str]:
        """Runs every registered undo action, newest first. Returns the names that failed."""
        failed: list[str] = []
        while self._actions:
            name, undo = self._actions.pop()
            try:
                undo()
                logger.info("%s: compensated %s", self.label, name)
            except Exception:
                logger.exception("%s: compensation %s failed", self.label, name)
                failed.append(name)
        return failed
