from __future__ import annotations

import logging
import time
import typing as t
from dataclasses import dataclass, field

import httpx

from ._models import CacheEntry
from ._storages import AsyncBaseStorage
from ._utils import partition

logger = logging.getLogger("shellcache.policies")

__all__ = ("CacheableResponsePolicy", "ExpirationPolicy")


@dataclass(frozen=True)
class CacheableResponsePolicy:
    """
    Decides whether a network response may be written to a cache.
    """

    statuses: t.Tuple[int, ...] = field(default=(200,))

    def is_cacheable(self, response: httpx.Response) -> bool:
        return response.status_code in self.statuses


@dataclass(frozen=True)
class ExpirationPolicy:
    """
    Count and age limits of a named cache.

    Enforced lazily: reads drop an expired hit, writes sweep the partition.
    """

    max_age_seconds: t.Optional[float] = None
    max_entries: t.Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_age_seconds is None and self.max_entries is None:
            raise ValueError("At least one of `max_age_seconds` or `max_entries` must be set")
        if self.max_entries is not None and self.max_entries <= 0:
            raise ValueError("`max_entries` must be positive")
        if self.max_age_seconds is not None and self.max_age_seconds <= 0:
            raise ValueError("`max_age_seconds` must be positive")

    def is_fresh(self, entry: CacheEntry, now: t.Optional[float] = None) -> bool:
        if self.max_age_seconds is None:
            return True
        return entry.age(now) <= self.max_age_seconds

    async def expire(self, storage: AsyncBaseStorage, cache_name: str, now: t.Optional[float] = None) -> t.List[str]:
        """
        Remove entries older than `max_age_seconds`, then the oldest ones beyond `max_entries`.

        :return: Keys that were removed
        """
        now = time.time() if now is None else now
        pairs = await storage.list_keys(cache_name)

        if self.max_age_seconds is not None:
            max_age = self.max_age_seconds
            expired, pairs = partition(pairs, lambda pair: now - pair[1] > max_age)
        else:
            expired = []

        if self.max_entries is not None and len(pairs) > self.max_entries:
            overflow = len(pairs) - self.max_entries
            expired.extend(pairs[:overflow])

        for key, _ in expired:
            await storage.remove(cache_name, key)

        if expired:
            logger.debug(f"Expired {len(expired)} entries from {cache_name!r}")
        return [key for key, _ in expired]
