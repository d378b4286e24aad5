"""
Notification fan-out for registry state changes.
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], None]


class Notifier:
    """
    Publishes `(name, payload)` notifications to subscribed callables.

    Notifications are sent after the state change is committed, so a failing
    listener is logged and skipped rather than unwinding the operation.
    """

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(name, payload)
            except Exception:
                logger.exception(f"Listener {listener!r} failed on '{name}' notification")
