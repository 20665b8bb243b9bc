"""Persistent pool classification cache.

Only static metadata is cached: pool class, weights and amplification,
keyed by pool id. Balances and concentrated state are never persisted.

The in-memory entry map is replaced, never mutated, on update. A reader
holding the previous map keeps seeing a consistent pre-update state, and
save() serializes whichever map is current when it runs.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from dexrouter.constants import CACHE_VERSION
from dexrouter.errors import CacheIOError

from .types import Pool, PoolClass, PoolParams, StableParams, Venue, WeightedParams

logger = structlog.get_logger()

_KNOWN_ENTRY_KEYS = frozenset({"class", "weights", "amplificationParameter", "venue", "queriedAt"})
_KNOWN_DOCUMENT_KEYS = frozenset({"version", "lastUpdated", "pools"})


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class CachedPoolMeta:
    """Static metadata of one classified pool.

    Attributes:
        pool_class: Weighted, Stable or Unknown
        venue: Venue the pool belongs to
        weights: Integer percent weights (Weighted only)
        amplification: Amplification parameter (Stable only)
        queried_at: ISO-8601 time the classification was made
        extra: Unrecognized keys from the stored entry, written back verbatim
    """

    pool_class: PoolClass
    venue: Venue
    weights: tuple[int, ...] | None = None
    amplification: Decimal | None = None
    queried_at: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def params(self) -> PoolParams | None:
        """Pool parameters reconstructed from the cached metadata."""
        if self.pool_class is PoolClass.WEIGHTED and self.weights:
            return WeightedParams(self.weights)
        if self.pool_class is PoolClass.STABLE and self.amplification is not None:
            return StableParams(self.amplification)
        return None

    def matches(self, pool: Pool) -> bool:
        """False if the entry cannot describe the pool (weights per token differ)."""
        if self.pool_class is PoolClass.WEIGHTED:
            return self.weights is not None and len(self.weights) == len(pool.tokens)
        return True

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data["class"] = self.pool_class.value
        data["venue"] = self.venue.value
        data["queriedAt"] = self.queried_at
        if self.weights is not None:
            data["weights"] = list(self.weights)
        if self.amplification is not None:
            data["amplificationParameter"] = str(self.amplification)
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> CachedPoolMeta:
        """Parse a stored entry.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        try:
            pool_class = PoolClass(data["class"])
            venue = Venue(data.get("venue", Venue.B.value))
        except KeyError as e:
            raise ValueError(f"cache entry missing {e}") from e

        weights = data.get("weights")
        amplification = data.get("amplificationParameter")
        try:
            parsed_amp = Decimal(str(amplification)) if amplification is not None else None
        except InvalidOperation as e:
            raise ValueError(f"invalid amplification {amplification!r}") from e

        return cls(
            pool_class=pool_class,
            venue=venue,
            weights=tuple(int(w) for w in weights) if weights is not None else None,
            amplification=parsed_amp,
            queried_at=str(data.get("queriedAt", "")),
            extra={k: v for k, v in data.items() if k not in _KNOWN_ENTRY_KEYS},
        )


class PoolCache:
    """Process-wide pool classification cache with explicit load/save.

    Store failures never fail a request: they are logged as warnings and the
    cache keeps working in memory.
    """

    def __init__(self, store: Any | None = None) -> None:
        """Initialize an empty cache.

        Args:
            store: CacheStore used by load() and save(). None keeps the cache
                in memory only.
        """
        self.store = store
        self._entries: dict[str, CachedPoolMeta] = {}
        # Entries that could not be parsed, preserved for forward compatibility
        self._opaque_entries: dict[str, Any] = {}
        self._extra: dict[str, Any] = {}
        self.last_updated: str | None = None
        self.version = CACHE_VERSION
        self._save_lock = asyncio.Lock()
        # Number of put() calls, so callers can tell whether anything changed
        self.writes = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pool_id: object) -> bool:
        return isinstance(pool_id, str) and pool_id.lower() in self._entries

    def get(self, pool_id: str) -> CachedPoolMeta | None:
        return self._entries.get(pool_id.lower())

    def put(self, pool_id: str, meta: CachedPoolMeta) -> None:
        """Record metadata for a pool (copy-on-write)."""
        entries = dict(self._entries)
        entries[pool_id.lower()] = meta
        self._entries = entries
        self.writes += 1

    def clear(self) -> None:
        self._entries = {}
        self._opaque_entries = {}
        self.last_updated = None

    def stats(self) -> dict[str, Any]:
        """Entry counts by pool class and the last save time."""
        by_class = Counter(meta.pool_class.value for meta in self._entries.values())
        return {
            "total": len(self._entries),
            "byClass": dict(sorted(by_class.items())),
            "lastUpdated": self.last_updated,
            "version": self.version,
        }

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_document(self, last_updated: str | None = None) -> dict[str, Any]:
        """Serialize the cache to its JSON document form."""
        pools: dict[str, Any] = dict(self._opaque_entries)
        for pool_id, meta in sorted(self._entries.items()):
            pools[pool_id] = meta.to_json()
        document: dict[str, Any] = dict(self._extra)
        document["version"] = self.version
        document["lastUpdated"] = last_updated or self.last_updated or utc_now_iso()
        document["pools"] = pools
        return document

    def load_document(self, document: dict[str, Any]) -> None:
        """Replace the cache contents with a stored document."""
        entries: dict[str, CachedPoolMeta] = {}
        opaque: dict[str, Any] = {}
        raw_pools = document.get("pools") or {}
        if not isinstance(raw_pools, dict):
            raw_pools = {}
        for pool_id, raw in raw_pools.items():
            try:
                entries[pool_id.lower()] = CachedPoolMeta.from_json(raw)
            except (TypeError, ValueError, AttributeError):
                logger.debug("pool_cache_entry_unreadable", pool_id=pool_id)
                opaque[pool_id] = raw
        self._entries = entries
        self._opaque_entries = opaque
        self._extra = {k: v for k, v in document.items() if k not in _KNOWN_DOCUMENT_KEYS}
        self.version = str(document.get("version", CACHE_VERSION))
        self.last_updated = document.get("lastUpdated")

    async def load(self) -> bool:
        """Load the cache from its store.

        Returns:
            True if a stored document was loaded
        """
        if self.store is None:
            return False
        try:
            document = await self.store.load()
        except CacheIOError as e:
            logger.warning("pool_cache_load_failed", error=str(e))
            return False
        if document is None:
            return False
        self.load_document(document)
        logger.info("pool_cache_loaded", entries=len(self._entries))
        return True

    async def save(self) -> bool:
        """Persist the cache to its store.

        Returns:
            True if the document was written
        """
        if self.store is None:
            return False
        async with self._save_lock:
            last_updated = utc_now_iso()
            document = self.to_document(last_updated)
            try:
                await self.store.save(document)
            except CacheIOError as e:
                logger.warning("pool_cache_save_failed", error=str(e))
                return False
            self.last_updated = last_updated
        logger.debug("pool_cache_saved", entries=len(self._entries))
        return True


__all__ = ["CachedPoolMeta", "PoolCache", "utc_now_iso"]
