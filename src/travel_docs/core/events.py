from __future__ import annotations

from collections.abc import Callable

from travel_docs.core.logging import get_logger, log_exception

logger = get_logger(__name__)

Listener = Callable[[], None]


class EventEmitter:
    """Zero-payload, in-process, best-effort notification fan-out."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                log_exception(
                    logger,
                    "events.listener.error",
                    emitter=self.name,
                    listener=getattr(listener, "__name__", repr(listener)),
                )


documents_changed = EventEmitter("documents_changed")
identity_documents_changed = EventEmitter("identity_documents_changed")
