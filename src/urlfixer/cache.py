"""Memoization of rewrite results keyed by the raw input URL."""

import threading
from typing import Iterator, Optional


class RewriteCache:
    """Unbounded URL -> URL mapping, safe to share between threads.

    There is no eviction and no TTL: one cache lives as long as the engine
    that owns it.
    """

    __slots__ = ("_data", "_lock")

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, url: str) -> Optional[str]:
        with self._lock:
            return self._data.get(url)

    def set(self, url: str, rewritten: str) -> str:
        with self._lock:
            self._data[url] = rewritten
        return rewritten

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))
