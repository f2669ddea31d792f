"""
Persistent response cache.

Wraps a :class:`diskcache.Cache` directory.  Keys are 8-byte fingerprints
from :mod:`writer_ai.cache.fingerprint`; values are :class:`CacheEntry`
bytes.  TTL is enforced here rather than by diskcache: expired entries
are removed lazily by the lookup that finds them and eagerly by
:meth:`CacheStore.cleanup_expired`, which runs once when the store is
opened.  diskcache serializes concurrent writers through SQLite, so one
store can be shared by every request without extra locking.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union

from diskcache import Cache as DiskCache
from diskcache import Timeout
from pydantic import BaseModel

from writer_ai.cache.entry import CacheEntry, unix_now
from writer_ai.config import CacheSettings
from writer_ai.exceptions import DeserializationError, StorageError

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (OSError, sqlite3.Error, Timeout)


class CacheStats(BaseModel):
    """Aggregate cache statistics.

    Attributes:
        hits: Lookups answered from the cache.
        misses: Lookups that found nothing usable.
        expired: Entries removed because a lookup found them stale.
        hit_rate: Ratio of hits to total lookups (0.0 if no lookups).
        entry_count: Entries currently on disk, expired ones included.
    """

    hits: int = 0
    misses: int = 0
    expired: int = 0
    hit_rate: float = 0.0
    entry_count: int = 0


class CacheStore:
    """TTL-enforcing key-value store for provider responses.

    Use :meth:`open` rather than the constructor.

    Args:
        backend: An open diskcache ``Cache``.
        config: Cache settings; ``enabled=False`` turns lookups and
            stores into no-ops.
    """

    def __init__(self, backend: DiskCache, config: CacheSettings) -> None:
        self._backend = backend
        self._config = config
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._expired = 0

    @classmethod
    def open(cls, path: Union[str, Path], config: CacheSettings) -> "CacheStore":
        """Open or create the store at *path*.

        When caching is enabled, expired entries are swept immediately.

        Raises:
            StorageError: If the directory or database cannot be opened.
        """
        try:
            backend = DiskCache(str(path))
        except _BACKEND_ERRORS as exc:
            raise StorageError(f"Failed to open cache database at {path}: {exc}") from exc

        store = cls(backend, config)
        if config.enabled:
            removed = store.cleanup_expired()
            if removed:
                logger.info(
                    "Removed expired cache entries during startup",
                    extra={"count": removed},
                )
        return store

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def directory(self) -> str:
        return self._backend.directory

    def lookup(self, key: bytes, now: Optional[int] = None) -> Optional[str]:
        """Return the cached response for *key*, or ``None`` on a miss.

        Stale entries are deleted on discovery.  An entry that cannot be
        decoded counts as a miss and is left in place.

        Raises:
            StorageError: If the backend read fails.
        """
        if not self._config.enabled:
            return None

        try:
            raw = self._backend.get(key, default=None, retry=True)
        except _BACKEND_ERRORS as exc:
            raise StorageError(f"Cache lookup failed: {exc}") from exc

        if raw is None:
            self._count(misses=1)
            logger.debug("Cache miss", extra={"cache_key": key.hex()})
            return None

        try:
            entry = CacheEntry.from_bytes(raw)
        except DeserializationError as exc:
            self._count(misses=1)
            logger.warning(
                "Unreadable cache entry treated as miss",
                extra={"cache_key": key.hex(), "error": str(exc)},
            )
            return None

        if entry.is_expired(now):
            self._count(misses=1, expired=1)
            try:
                self._backend.delete(key, retry=True)
            except _BACKEND_ERRORS as exc:
                logger.warning(
                    "Failed to delete expired cache entry",
                    extra={"cache_key": key.hex(), "error": str(exc)},
                )
            logger.debug("Removed expired cache entry", extra={"cache_key": key.hex()})
            return None

        self._count(hits=1)
        logger.debug("Cache hit", extra={"cache_key": key.hex()})
        return entry.response

    def store(self, key: bytes, response: str, ttl_days: Optional[int] = None) -> None:
        """Write *response* under *key*, replacing any previous entry.

        Args:
            key: Fingerprint of the request.
            response: Provider response text.
            ttl_days: Lifetime in days; defaults to the configured TTL.

        Raises:
            StorageError: If the entry cannot be built or the backend
                write fails.
        """
        if not self._config.enabled:
            return

        ttl = self._config.ttl_days if ttl_days is None else ttl_days
        try:
            entry = CacheEntry.create(response, ttl)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Failed to build cache entry: {exc}") from exc
        try:
            self._backend.set(key, entry.to_bytes(), retry=True)
        except _BACKEND_ERRORS as exc:
            raise StorageError(f"Failed to store in cache: {exc}") from exc
        logger.debug(
            "Stored response in cache",
            extra={"cache_key": key.hex(), "expires_at": entry.expires_at},
        )

    def cleanup_expired(self, now: Optional[int] = None) -> int:
        """Delete every expired entry.

        Entries that cannot be read or decoded are skipped, neither
        counted nor deleted.

        Returns:
            Number of entries removed (0 when caching is disabled).

        Raises:
            StorageError: If the key scan itself fails.
        """
        if not self._config.enabled:
            return 0

        now = unix_now() if now is None else now
        try:
            keys = list(self._backend.iterkeys())
        except _BACKEND_ERRORS as exc:
            raise StorageError(f"Cache scan failed: {exc}") from exc

        removed = 0
        for key in keys:
            try:
                raw = self._backend.get(key, default=None, retry=True)
                if raw is None:
                    continue
                entry = CacheEntry.from_bytes(raw)
                if entry.expires_at < now and self._backend.delete(key, retry=True):
                    removed += 1
            except DeserializationError:
                continue
            except _BACKEND_ERRORS as exc:
                logger.warning(
                    "Skipping cache entry during cleanup",
                    extra={"error": str(exc)},
                )

        if removed:
            logger.info("Expired entries cleaned up", extra={"count": removed})
        return removed

    def clear(self) -> int:
        """Remove all entries regardless of expiry.

        Returns:
            Number of entries removed.

        Raises:
            StorageError: If the backend fails.
        """
        try:
            count = self._backend.clear(retry=True)
        except _BACKEND_ERRORS as exc:
            raise StorageError(f"Failed to clear cache: {exc}") from exc
        logger.info("Cache cleared", extra={"entries_removed": count})
        return count

    def stats(self) -> CacheStats:
        """Return aggregate cache statistics."""
        with self._lock:
            hits, misses, expired = self._hits, self._misses, self._expired
        total = hits + misses
        return CacheStats(
            hits=hits,
            misses=misses,
            expired=expired,
            hit_rate=hits / total if total > 0 else 0.0,
            entry_count=self.size,
        )

    @property
    def size(self) -> int:
        """Current number of entries on disk."""
        try:
            return len(self._backend)
        except _BACKEND_ERRORS as exc:
            raise StorageError(f"Cache size query failed: {exc}") from exc

    def close(self) -> None:
        self._backend.close()

    def __enter__(self) -> "CacheStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _count(self, hits: int = 0, misses: int = 0, expired: int = 0) -> None:
        with self._lock:
            self._hits += hits
            self._misses += misses
            self._expired += expired
