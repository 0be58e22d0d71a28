# yoga_service/cache.py
"""
Explicit cache for documents fetched through the data service.

Entries expire after `ttl_seconds`. The cache also remembers whether it
holds the complete listing of its collection, so a "get all" read can be
answered locally until that listing expires or a write leaves its contents
unknown.
"""

import time
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class DocumentCache(Generic[T]):
    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, T]] = {}
        self._listing_loaded_at: Optional[float] = None

    def _fresh(self, stamp: float) -> bool:
        return self._clock() - stamp < self.ttl_seconds

    def get(self, doc_id: str) -> Optional[T]:
        entry = self._entries.get(doc_id)
        if entry is None:
            return None
        stamp, value = entry
        if not self._fresh(stamp):
            del self._entries[doc_id]
            return None
        return value

    def put(self, doc_id: str, value: T):
        self._entries[doc_id] = (self._clock(), value)

    def put_all(self, items: Dict[str, T]):
        now = self._clock()
        self._entries = {doc_id: (now, value) for doc_id, value in items.items()}
        self._listing_loaded_at = now

    def all(self) -> Optional[List[T]]:
        """The complete listing, or None if it was never loaded or has gone stale."""
        if self._listing_loaded_at is None or not self._fresh(self._listing_loaded_at):
            return None
        values = []
        for doc_id in list(self._entries):
            value = self.get(doc_id)
            if value is None:
                self._listing_loaded_at = None
                return None
            values.append(value)
        return values

    def discard(self, doc_id: str):
        # document is gone; a loaded listing stays complete
        self._entries.pop(doc_id, None)

    def invalidate(self, doc_id: str):
        self._entries.pop(doc_id, None)
        self._listing_loaded_at = None

    def clear(self):
        self._entries.clear()
        self._listing_loaded_at = None

    def __len__(self):
        return len(self._entries)
