"""Cache policy decisions.

:func:`decide` is a pure function: given a request's
:class:`~httpservice.models.CachePolicy`, its maximum age, whether a cache
store is configured, and -- after the network round trip -- the error that
occurred, it returns the :data:`CacheAction` the executor should take.

Decision table::

    policy                                   before network            on HTTP error
    ---------------------------------------  ------------------------  ------------------------
    use_age                                  ReadCacheFirst(max_age)   PropagateError
    return_cache_data_else_load              ReadCacheFirstNoAgeCheck  PropagateError
    use_age_return_cache_data_if_error       GoToNetwork               FallbackToCacheOnError(None)
    reload_return_cache_data_if_error        GoToNetwork               FallbackToCacheOnError(None)
    reload_..._with_age_check_if_error       GoToNetwork               FallbackToCacheOnError(max_age)

Without a store every request goes to the network and every error
propagates. Transport failures, non-HTTP errors and the statuses in
:data:`NEVER_MASKED_STATUSES` always propagate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from httpservice.exceptions import HTTPResponseError
from httpservice.models import CachePolicy

NEVER_MASKED_STATUSES = frozenset({401, 403, 404, 410})
"""Unauthorized, forbidden, not found and gone are never replaced by a cached entry."""


@dataclass(frozen=True)
class ReadCacheFirst:
    """Serve a cached entry no older than ``max_age`` without touching the network."""

    max_age: float


@dataclass(frozen=True)
class ReadCacheFirstNoAgeCheck:
    """Serve any cached entry, regardless of age, without touching the network."""


@dataclass(frozen=True)
class GoToNetwork:
    """Skip the cache and dispatch the request."""


@dataclass(frozen=True)
class FallbackToCacheOnError:
    """Replace the error with a cached entry; ``max_age=None`` skips the age check."""

    max_age: Optional[float] = None


@dataclass(frozen=True)
class PropagateError:
    """Raise the error to the caller."""


CacheAction = Union[
    ReadCacheFirst,
    ReadCacheFirstNoAgeCheck,
    GoToNetwork,
    FallbackToCacheOnError,
    PropagateError,
]


def decide(
    policy: CachePolicy,
    max_age: float,
    *,
    cache_available: bool,
    outcome: Optional[BaseException] = None,
) -> CacheAction:
    """Return the cache action for a request.

    Args:
        policy: The request's cache policy.
        max_age: Maximum entry age in seconds (``math.inf`` disables the check).
        cache_available: Whether a cache store is configured.
        outcome: ``None`` before the network call; the raised error after a
            failed one.

    Returns:
        One of the :data:`CacheAction` variants.
    """
    if outcome is None:
        if not cache_available:
            return GoToNetwork()
        if policy == CachePolicy.USE_AGE:
            return ReadCacheFirst(max_age)
        if policy == CachePolicy.RETURN_CACHE_DATA_ELSE_LOAD:
            return ReadCacheFirstNoAgeCheck()
        return GoToNetwork()

    if not cache_available or not isinstance(outcome, HTTPResponseError):
        return PropagateError()
    if outcome.status_code in NEVER_MASKED_STATUSES:
        return PropagateError()
    if policy in (
        CachePolicy.USE_AGE_RETURN_CACHE_DATA_IF_ERROR,
        CachePolicy.RELOAD_RETURN_CACHE_DATA_IF_ERROR,
    ):
        return FallbackToCacheOnError(None)
    if policy == CachePolicy.RELOAD_RETURN_CACHE_DATA_WITH_AGE_CHECK_IF_ERROR:
        return FallbackToCacheOnError(max_age)
    return PropagateError()
