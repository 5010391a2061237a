"""Per-run memo of fetched payloads."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Hashable, Optional


class RunCache:
    """Unbounded map that lives for one refresh run.

    Keys are derived with ``key_func`` so callers can pass whatever
    identifies a request (a URL, a ``(url, kind)`` pair). Call ``clear``
    between runs.
    """

    def __init__(self, key_func: Optional[Callable[..., Hashable]] = None) -> None:
        self.key_func = key_func or (lambda *parts: parts)
        self._data: Dict[Hashable, Any] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def get_or_set(self, factory: Callable[[], Any], *parts: Any) -> Any:
        key = self.key_func(*parts)
        with self._lock:
            if key in self._data:
                return self._data[key]
        value = factory()
        with self._lock:
            return self._data.setdefault(key, value)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
