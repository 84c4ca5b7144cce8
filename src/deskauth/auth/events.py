"""UI notification events emitted by the orchestrator.

The orchestrator reports progress through a plain ``notify(event, payload)``
callable, so any transport (a GUI toolkit's signal, a websocket, a queue)
can be plugged in. :class:`EventBus` is the in-process implementation used
by default.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

LOGIN_COMPLETE = "auth:login-complete"
"""Emitted after a successful token exchange. No payload."""

LOGIN_ERROR = "auth:login-error"
"""Emitted when a login attempt fails. Payload: the error message string."""

LOGOUT_COMPLETE = "auth:logout-complete"
"""Emitted after the local session has been cleared. No payload."""

Notifier = Callable[[str, Any], None]
Listener = Callable[[str, Any], None]


class EventBus:
    """Fire-and-forget dispatcher of auth events to registered listeners.

    Listeners are called synchronously, in subscription order, on the
    thread that emitted the event. A listener that raises is logged and
    skipped; it never affects the emitter or other listeners.

    Example::

        bus = EventBus()
        bus.subscribe(LOGIN_ERROR, lambda event, message: print(message))
        orchestrator = AuthOrchestrator(notify=bus.emit)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[tuple[str | None, Listener]] = []

    def subscribe(self, event_name: str, listener: Listener) -> Callable[[], None]:
        """Call *listener* for every *event_name* event.

        Returns:
            A function that removes the subscription.
        """
        return self._add(event_name, listener)

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* for every event."""
        return self._add(None, listener)

    def emit(self, event_name: str, payload: Any = None) -> None:
        """Deliver *event_name* with *payload* to matching listeners."""
        with self._lock:
            listeners = [
                listener
                for name, listener in self._listeners
                if name is None or name == event_name
            ]
        logger.debug("Emitting %s to %d listener(s)", event_name, len(listeners))
        for listener in listeners:
            try:
                listener(event_name, payload)
            except Exception:
                logger.warning("Listener for %s failed", event_name, exc_info=True)

    def _add(self, event_name: str | None, listener: Listener) -> Callable[[], None]:
        entry = (event_name, listener)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe
