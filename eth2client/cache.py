"""Connection-scoped, write-once caches."""

import asyncio
from typing import Any, Awaitable, Callable, Hashable


class OnceCache:
    """Lazily populated values that never change once stored.

    Concurrent first reads of the same key share a single load. A failed load
    stores nothing, so the next read tries again.
    """

    def __init__(self):
        self._values: dict[Hashable, Any] = {}
        self._locks: dict[Hashable, asyncio.Lock] = {}

    async def get(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        if key in self._values:
            return self._values[key]
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key not in self._values:
                self._values[key] = await loader()
        return self._values[key]

    def peek(self, key: Hashable, default: Any = None) -> Any:
        return self._values.get(key, default)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values
