"""Response caching for httpservice.

This package holds the two halves of conditional caching:

* :mod:`~httpservice.cache.policy` -- the pure decision function that maps a
  :class:`~httpservice.models.CachePolicy` and a request outcome to an
  action (read the cache first, go to the network, fall back on error).
* :mod:`~httpservice.cache.store` -- the :class:`CacheStore` interface and
  its :mod:`diskcache` and in-memory implementations.

Both are consumed by :class:`~httpservice.client.executor.RequestExecutor`.
"""

from httpservice.cache.policy import (
    NEVER_MASKED_STATUSES,
    CacheAction,
    FallbackToCacheOnError,
    GoToNetwork,
    PropagateError,
    ReadCacheFirst,
    ReadCacheFirstNoAgeCheck,
    decide,
)
from httpservice.cache.store import (
    CacheStore,
    DiskCacheStore,
    MemoryCacheStore,
    is_cacheable,
    is_fresh,
    open_store,
    request_key,
)

__all__ = [
    "NEVER_MASKED_STATUSES",
    "CacheAction",
    "CacheStore",
    "DiskCacheStore",
    "FallbackToCacheOnError",
    "GoToNetwork",
    "MemoryCacheStore",
    "PropagateError",
    "ReadCacheFirst",
    "ReadCacheFirstNoAgeCheck",
    "decide",
    "is_cacheable",
    "is_fresh",
    "open_store",
    "request_key",
]
