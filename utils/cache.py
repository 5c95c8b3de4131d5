# =============================================================================
# 🧠 utils/cache.py
# -----------------------------------------------------------------------------
# In-process key/value cache with TTL and a tag index.
#
# Every read-heavy path goes through CacheGateway.wrap(). Writes invalidate
# by tag (deal:<id>, business:<id>, feed:user:<id>, feed:nearby), which makes
# invalidation exact instead of relying on wildcard deletion.
# =============================================================================

from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)


# TTL constants (seconds)
ONE_MINUTE = 60
TWO_MINUTES = 120
FIVE_MINUTES = 300
TEN_MINUTES = 600

# Key prefixes
PREFIX_DEAL = "deal"
PREFIX_BUSINESS = "business"
PREFIX_USER = "user"
PREFIX_FEED = "feed"
PREFIX_STATS = "stats"
PREFIX_FOLLOWS = "follows"
PREFIX_BOOKMARKS = "bookmarks"

TAG_NEARBY_FEEDS = "feed:nearby"


def deal_tag(deal_id) -> str:
    return f"{PREFIX_DEAL}:{deal_id}"


def business_tag(business_id) -> str:
    return f"{PREFIX_BUSINESS}:{business_id}"


def user_feed_tag(user_id) -> str:
    return f"{PREFIX_FEED}:user:{user_id}"


_MISSING = object()


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float]
    tags: frozenset = field(default_factory=frozenset)


class CacheGateway:
    def __init__(self, default_ttl: int = FIVE_MINUTES, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._tags: dict[str, set[str]] = {}
        self._lock = threading.RLock()

    # ---------------------------------------------------------------------
    # 🔹 Basic operations
    # ---------------------------------------------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if entry.expires_at is not None and entry.expires_at <= self._clock():
                self._drop(key)
                return default
            return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        expires_at = self._clock() + ttl if ttl > 0 else None
        with self._lock:
            self._drop(key)
            entry = _Entry(value=copy.deepcopy(value), expires_at=expires_at, tags=frozenset(tags))
            self._entries[key] = entry
            for tag in entry.tags:
                self._tags.setdefault(tag, set()).add(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._drop(key)

    def delete_tag(self, tag: str) -> int:
        with self._lock:
            keys = list(self._tags.get(tag, ()))
            for key in keys:
                self._drop(key)
            self._tags.pop(tag, None)
            return len(keys)

    def delete_pattern(self, pattern: str) -> int:
        """
        Best effort: exact keys and trailing-wildcard prefixes ("feed:*") only.
        Anything else is ignored and logged.
        """
        if "*" not in pattern:
            self.delete(pattern)
            return 1
        if pattern.count("*") == 1 and pattern.endswith("*"):
            prefix = pattern[:-1]
            with self._lock:
                keys = [k for k in self._entries if k.startswith(prefix)]
                for key in keys:
                    self._drop(key)
            return len(keys)
        logger.warning(f"⚠️ Unsupported cache pattern ignored: {pattern}")
        return 0

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def build_key(prefix: str, *parts) -> str:
        return ":".join([prefix, *[str(p) for p in parts]])

    def wrap(
        self,
        key: str,
        fn: Callable[[], Any],
        ttl: Optional[int] = None,
        tags: Iterable[str] = (),
    ) -> Any:
        """Return the cached value or compute, store and return it."""
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        result = fn()
        self.set(key, result, ttl=ttl, tags=tags)
        return result

    # ---------------------------------------------------------------------
    # 🔹 Domain invalidation
    # ---------------------------------------------------------------------
    def invalidate_deal(self, deal_id, business_id=None) -> None:
        self.delete(self.build_key(PREFIX_DEAL, deal_id))
        self.delete_tag(deal_tag(deal_id))
        self.delete_tag(TAG_NEARBY_FEEDS)
        if business_id is not None:
            self.invalidate_business(business_id)

    def invalidate_business(self, business_id) -> None:
        self.delete(self.build_key(PREFIX_BUSINESS, business_id))
        self.delete_tag(business_tag(business_id))
        self.delete_tag(TAG_NEARBY_FEEDS)

    def invalidate_user(self, user_id) -> None:
        for prefix in (PREFIX_USER, PREFIX_STATS, PREFIX_FOLLOWS, PREFIX_BOOKMARKS):
            self.delete(self.build_key(prefix, user_id))
        self.invalidate_feed(user_id)

    def invalidate_feed(self, user_id) -> None:
        self.delete_tag(user_feed_tag(user_id))

    # ---------------------------------------------------------------------
    # 🔹 Internals (lock must be held)
    # ---------------------------------------------------------------------
    def _drop(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    self._tags.pop(tag, None)


# 🔹 process-wide instance + FastAPI dependency
cache = CacheGateway()


def get_cache() -> CacheGateway:
    return cache
