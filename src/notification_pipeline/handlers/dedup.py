"""
Idempotency-key cache for email delivery.

Records redelivered by the broker (rebalance, crash before commit) carry the
same idempotency_key as the original. Keys seen within the TTL are skipped.
Envelopes without a key are never deduplicated.
"""

import time
from collections import OrderedDict
from typing import Callable, Optional


class DeliveryDeduplicator:
    """
    Bounded in-memory TTL cache of delivered idempotency keys.

    Per-process only: consumers in other processes keep their own cache,
    which is enough because a partition is owned by one consumer at a time.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, float]" = OrderedDict()

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._entries)

    def seen(self, key: Optional[str]) -> bool:
        """True if `key` was marked delivered within the TTL."""
        if not key:
            return False
        self._evict_expired()
        return key in self._entries

    def mark(self, key: Optional[str]) -> None:
        """Remember `key` as delivered."""
        if not key:
            return
        self._entries.pop(key, None)
        self._entries[key] = self._clock() + self.ttl_seconds
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def _evict_expired(self) -> None:
        now = self._clock()
        # Insertion order matches expiry order because the TTL is fixed
        while self._entries:
            key, expires_at = next(iter(self._entries.items()))
            if expires_at > now:
                break
            del self._entries[key]
