from __future__ import annotations

import threading
from typing import Any, Callable

Handler = Callable[..., Any]


class EventBus:
    """Publish/subscribe hub between the stores, the worker and a front end.

    Topics in use:

    - ``settings.changed``         fields, state (AnalysisSettings)
    - ``player_settings.changed``  fields, state (PlayerSettings)
    - ``analysis.start`` / ``analysis.complete`` / ``analysis.cancelled`` /
      ``analysis.failed``          see :class:`~audiopreviewlib.worker.AnalysisWorker`

    The worker publishes from its own thread, so handlers must not assume
    they run on the subscriber's thread.  Each topic holds an immutable
    tuple of handlers; ``emit`` iterates the tuple it saw, and a handler
    that (un)subscribes during delivery takes effect from the next emit.
    """

    def __init__(self) -> None:
        self._topics: dict[str, tuple[Handler, ...]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            self._topics[event_type] = self._topics.get(event_type, ()) + (handler,)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        """Drop the first registration of *handler*; unknown handlers are ignored."""
        with self._lock:
            handlers = list(self._topics.get(event_type, ()))
            if handler not in handlers:
                return
            handlers.remove(handler)
            if handlers:
                self._topics[event_type] = tuple(handlers)
            else:
                del self._topics[event_type]

    def emit(self, event_type: str, **data: Any) -> None:
        for handler in self._topics.get(event_type, ()):
            handler(**data)

    def has_subscribers(self, event_type: str) -> bool:
        """Lets the stores skip diffing snapshots nobody listens to."""
        return event_type in self._topics

    def clear(self, event_type: str | None = None) -> None:
        with self._lock:
            if event_type is None:
                self._topics.clear()
            else:
                self._topics.pop(event_type, None)
