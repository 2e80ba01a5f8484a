import logging
import time
from collections import OrderedDict
from typing import Any, Callable

logger = logging.getLogger(__name__)


class ResponseCache:
    """Bounded TTL cache for side-channel GET responses (model catalogs).

    Entries are keyed by URL plus the sorted request headers. The least
    recently used entry is evicted once ``max_entries`` is reached.
    """

    def __init__(
        self,
        max_entries: int = 16,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max_entries = max(1, max_entries)
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()

    @staticmethod
    def make_key(url: str, headers: dict[str, str] | None = None) -> str:
        parts = [url]
        for name, value in sorted((headers or {}).items()):
            parts.append(f"{name.lower()}={value}")
        return "\n".join(parts)

    def get(self, url: str, headers: dict[str, str] | None = None) -> Any | None:
        key = self.make_key(url, headers)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def put(self, url: str, headers: dict[str, str] | None, value: Any) -> None:
        key = self.make_key(url, headers)
        self._entries[key] = (self._clock(), value)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cached response for %s", evicted.split("\n", 1)[0])

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
