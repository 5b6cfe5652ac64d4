"""Response cache stores.

A store maps a request key (see :func:`request_key`) to a
:class:`~httpservice.models.CachedEntry`. Two implementations ship with the
package:

* :class:`DiskCacheStore` -- persists entries with :mod:`diskcache`; safe
  for concurrent use from several threads and processes.
* :class:`MemoryCacheStore` -- a lock-guarded dict, mainly for tests and
  short-lived processes.

Both honour the same contract:

* Only 2xx entries are written; a stored entry with any other status is
  never returned by :meth:`~CacheStore.lookup`.
* ``lookup(key)`` ignores age. ``lookup(key, max_age)`` also requires the
  entry to be fresh, judged from the response's ``Date`` header
  (:func:`is_fresh`).

Neither store evicts entries on its own beyond what :mod:`diskcache` does
when it reaches its size limit.
"""

from __future__ import annotations

import hashlib
import math
import threading
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

import diskcache
from pydantic import ValidationError

from httpservice.models import CacheConfig, CachedEntry, find_header

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def request_key(method: str, url: str) -> str:
    """SHA-256 hex digest of ``METHOD|URL``.

    The URL is expected to already carry its encoded query string, so
    requests differing only in query parameters get distinct keys.
    """
    raw = f"{method.upper()}|{url}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def is_cacheable(headers: Mapping[str, str]) -> bool:
    """Return ``False`` when ``Cache-Control`` carries ``no-cache`` or ``no-store``."""
    value = find_header(dict(headers), "Cache-Control")
    if not value:
        return True
    for directive in value.split(","):
        token = directive.split("=", 1)[0].strip().lower()
        if token in ("no-cache", "no-store"):
            return False
    return True


def response_date(entry: CachedEntry) -> Optional[datetime]:
    """Parse the entry's ``Date`` header (RFC 1123), or ``None`` if absent or invalid."""
    value = entry.header("Date")
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_fresh(entry: CachedEntry, max_age: Optional[float], now: Optional[datetime] = None) -> bool:
    """Whether *entry* is at most *max_age* seconds old.

    ``None`` or an infinite *max_age* disables the check. An entry without a
    parsable ``Date`` header is treated as fresh.
    """
    if max_age is None or math.isinf(max_age):
        return True
    date = response_date(entry)
    if date is None:
        return True
    elapsed = ((now or _utcnow()) - date).total_seconds()
    return elapsed <= max_age


@runtime_checkable
class CacheStore(Protocol):
    """Interface the request executor uses to read and write cached responses.

    Implementations are called from worker threads and must tolerate
    concurrent calls for different keys.
    """

    def lookup(self, key: str, max_age: Optional[float] = None) -> Optional[CachedEntry]: ...

    def store(self, key: str, entry: CachedEntry) -> None: ...

    def invalidate(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def close(self) -> None: ...

    def stats(self) -> dict[str, Any]: ...


class DiskCacheStore:
    """Disk-backed response store.

    Entries are kept in a :class:`diskcache.Cache` under
    ``<directory>/responses`` as plain dicts and re-validated into
    :class:`~httpservice.models.CachedEntry` on read; an entry that no longer
    validates is dropped and reported as a miss.

    Args:
        directory: Root directory for the cache.
        clock: Returns the current time; used for freshness checks.

    Example::

        store = DiskCacheStore("/tmp/http-cache")
        store.store(request_key("GET", url), entry)
        hit = store.lookup(request_key("GET", url), max_age=CacheAge.ONE_HOUR)
    """

    def __init__(self, directory: str | Path, clock: Clock = _utcnow) -> None:
        self._directory = Path(directory) / "responses"
        self._cache = diskcache.Cache(str(self._directory))
        self._clock = clock
        self._hits = 0
        self._misses = 0

    def lookup(self, key: str, max_age: Optional[float] = None) -> Optional[CachedEntry]:
        raw = self._cache.get(key)
        entry: Optional[CachedEntry] = None
        if raw is not None:
            try:
                entry = CachedEntry.model_validate(raw)
            except ValidationError:
                self._cache.delete(key)
        if entry is None or not entry.is_success or not is_fresh(entry, max_age, self._clock()):
            self._misses += 1
            return None
        self._hits += 1
        return entry

    def store(self, key: str, entry: CachedEntry) -> None:
        if not entry.is_success:
            return
        self._cache.set(key, entry.model_dump())

    def invalidate(self, key: str) -> None:
        self._cache.delete(key)

    def clear(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`."""
        self._cache.close()

    def stats(self) -> dict[str, Any]:
        return {
            "backend": "disk",
            "size": len(self._cache),
            "directory": str(self._directory),
            "hits": self._hits,
            "misses": self._misses,
        }


class MemoryCacheStore:
    """In-process response store guarded by a lock."""

    def __init__(self, clock: Clock = _utcnow) -> None:
        self._entries: dict[str, CachedEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._hits = 0
        self._misses = 0

    def lookup(self, key: str, max_age: Optional[float] = None) -> Optional[CachedEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.is_success or not is_fresh(entry, max_age, self._clock()):
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def store(self, key: str, entry: CachedEntry) -> None:
        if not entry.is_success:
            return
        with self._lock:
            self._entries[key] = entry

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def close(self) -> None:
        pass

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "backend": "memory",
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
            }


def open_store(config: CacheConfig) -> Optional[CacheStore]:
    """Build the store described by *config*, or ``None`` when caching is disabled.

    Without an explicit ``directory`` the XDG cache directory is used.
    """
    if not config.enabled:
        return None
    if config.directory:
        return DiskCacheStore(Path(config.directory).expanduser())
    from httpservice.config import get_cache_dir

    return DiskCacheStore(get_cache_dir())
