"""
TTL-bounded memo of the last known-good address.
"""
import logging
import time
from typing import Optional

from .config import is_expired
from .types import CacheEntry, Clock

logger = logging.getLogger(__name__)


DEFAULT_TTL_SECONDS = 300.0


class AddressCache:
    """
    Single-entry address cache with lazy expiry.

    There is no background eviction: a stale entry stays in place until it
    is overwritten by the next successful resolution or cleared.

    Example:
        cache = AddressCache(ttl_seconds=300.0)
        cache.set("192.168.1.108")
        cache.get()  # "192.168.1.108" for the next five minutes
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entry: Optional[CacheEntry] = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self) -> Optional[str]:
        """Return the cached address if present and unexpired"""
        entry = self._entry
        if entry is None:
            return None
        if is_expired(entry.resolved_at, self._ttl, self._clock()):
            logger.debug(f"Cached address {entry.address} is stale")
            return None
        return entry.address

    def set(self, address: str) -> CacheEntry:
        """Store an address stamped with the current time, replacing any entry"""
        self._entry = CacheEntry(address=address, resolved_at=self._clock())
        return self._entry

    def clear(self) -> None:
        """Drop the entry"""
        self._entry = None

    def peek(self) -> Optional[CacheEntry]:
        """The current entry regardless of staleness"""
        return self._entry

    def is_valid(self) -> bool:
        return self.get() is not None

    def remaining_seconds(self) -> float:
        """Seconds until the entry goes stale, 0 if absent or stale"""
        entry = self._entry
        if entry is None:
            return 0.0
        return max(0.0, self._ttl - (self._clock() - entry.resolved_at))
