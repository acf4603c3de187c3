"""
Shift pointer — the console's cached belief about which shift is open.

The pointer is a hint, not a lock: it only saves a round trip when the
console is reopened. The backend answer always wins.

Stored in Django's cache framework under a single key, without expiry.
Use a persistent backend (file, database, redis) for the configured alias
so the pointer survives restarts. Concurrent writers (two consoles sharing
one cache) are last-write-wins.
"""

import logging

from django.core.cache import caches

from fuelshift.conf import fuelshift_settings

logger = logging.getLogger('fuelshift')


class ShiftPointerCache:
    """Read/write/clear the single optional open-shift id."""

    def __init__(self, cache=None, key: str | None = None):
        self._cache = cache
        self.key = key or fuelshift_settings.POINTER_KEY

    @property
    def cache(self):
        if self._cache is None:
            self._cache = caches[fuelshift_settings.POINTER_CACHE_ALIAS]
        return self._cache

    def get(self) -> int | None:
        """Cached shift id, or None (unreadable values count as absent)."""
        value = self.cache.get(self.key)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(
                "fuelshift.pointer.invalid",
                extra={"key": self.key, "value": repr(value)},
            )
            return None

    def set(self, shift_id: int) -> None:
        self.cache.set(self.key, str(shift_id), timeout=None)
        logger.debug("fuelshift.pointer.set", extra={"shift_id": shift_id})

    def clear(self) -> None:
        self.cache.delete(self.key)
        logger.debug("fuelshift.pointer.cleared", extra={"key": self.key})
