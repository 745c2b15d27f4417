"""Change notification for routing state."""

import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Listener = Callable[[str, dict], Any]


class EventSink(Protocol):
    def emit(self, event: str, payload: Optional[dict] = None) -> None: ...


class EventBus:
    """Synchronous publish/subscribe. '*' listeners receive every event."""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {}
        self.history: list[tuple[str, dict]] = []
        self.keep_history = False

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe():
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, payload: Optional[dict] = None) -> None:
        payload = payload or {}
        if self.keep_history:
            self.history.append((event, payload))
        for listener in list(self._listeners.get(event, [])) + list(self._listeners.get("*", [])):
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Error in listener for %s", event)

    def names(self) -> list[str]:
        return [name for name, _ in self.history]
