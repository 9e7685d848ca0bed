"""
Realtime subscription handles.

Stores notify interested views when a job or chat channel changes. A
subscription is a scoped resource: whoever subscribes owns the returned
:class:`Subscription` and must release it with ``close()`` or by using it
as a context manager::

    with service.subscribe_job(job_id, on_change):
        ...  # callbacks fire here
    # released
"""

import logging
import threading
from itertools import count
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class Subscription:
    """Handle for a registered listener. Closing is idempotent."""

    def __init__(self, key: str, release: Callable[[], None]):
        self.key = key
        self._release: Optional[Callable[[], None]] = release
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._release is not None

    def close(self) -> None:
        """Release the listener. Safe to call more than once."""
        with self._lock:
            release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<Subscription {self.key} {state}>"


class ListenerRegistry:
    """Thread-safe map of key -> listeners.

    Listener failures are logged and never reach the writer that triggered
    the change, nor the other listeners.
    """

    def __init__(self):
        self._listeners: Dict[str, Dict[int, Listener]] = {}
        self._ids = count(1)
        self._lock = threading.Lock()

    def add(self, key: str, listener: Listener) -> Subscription:
        if not callable(listener):
            raise TypeError("listener must be callable")
        with self._lock:
            listener_id = next(self._ids)
            self._listeners.setdefault(key, {})[listener_id] = listener

        def release() -> None:
            with self._lock:
                bucket = self._listeners.get(key)
                if bucket is None:
                    return
                bucket.pop(listener_id, None)
                if not bucket:
                    del self._listeners[key]

        return Subscription(key, release)

    def emit(self, key: str, payload: Any) -> int:
        """Call every listener for ``key``. Returns the number called."""
        with self._lock:
            listeners = list(self._listeners.get(key, {}).values())
        for listener in listeners:
            try:
                listener(payload)
            except Exception as e:
                logger.error(f"Listener for {key} failed: {e}")
        return len(listeners)

    def count(self, key: Optional[str] = None) -> int:
        """Number of active listeners (for one key, or overall)."""
        with self._lock:
            if key is not None:
                return len(self._listeners.get(key, {}))
            return sum(len(bucket) for bucket in self._listeners.values())
