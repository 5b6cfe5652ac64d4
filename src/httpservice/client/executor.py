"""Request execution with conditional caching.

:class:`RequestExecutor` runs one :class:`~httpservice.models.PreparedRequest`
through the pipeline::

    cache check -> network dispatch -> error classification -> (cache fallback) -> result

1. With cache criteria and a store, :func:`~httpservice.cache.policy.decide`
   may ask for a cache read before the network; a hit is returned directly.
2. The request is sent through the :class:`~httpservice.transport.Transport`.
   A :class:`~httpservice.exceptions.NetworkError` propagates at once.
3. A 2xx response is a success; anything else becomes the matching
   :class:`~httpservice.exceptions.HTTPResponseError` subclass.
4. Cacheable successes (criteria given, no ``no-cache``/``no-store``,
   non-empty body) are written to the store.
5. HTTP errors are offered to the policy once more, which may substitute a
   cached entry.

Store I/O runs in a worker thread via :func:`asyncio.to_thread` so that
blocking backends never stall the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from httpservice.cache.policy import (
    FallbackToCacheOnError,
    ReadCacheFirst,
    ReadCacheFirstNoAgeCheck,
    decide,
)
from httpservice.cache.store import CacheStore, is_cacheable, request_key
from httpservice.encoding.query import QueryItem, join_query_items
from httpservice.exceptions import GenericError, ServiceError, error_for_status
from httpservice.log import Logger, NullLogger
from httpservice.mime import MimeType
from httpservice.models import (
    CacheCriteria,
    CachedEntry,
    LogLevel,
    PreparedRequest,
    Result,
    TransportResponse,
)
from httpservice.transport import Transport

_RULE = "=" * 58


def resolve_url(
    base_url: Optional[str],
    route: str,
    query_items: Sequence[QueryItem] = (),
) -> str:
    """Resolve *route* against *base_url* and append *query_items*.

    Exactly one ``/`` separates the base path from the route, whatever
    slashes either side carries. An empty route leaves the base unchanged.
    Without a base URL the route is used as the URL.

    Example::

        resolve_url("https://api.example.com/v1/", "/items", [("page", "2")])
        # 'https://api.example.com/v1/items?page=2'

    Raises:
        GenericError: If the result is not an absolute URL.
    """
    if base_url:
        parts = urlsplit(base_url)
        path = parts.path
        if route:
            path = f"{path.rstrip('/')}/{route.lstrip('/')}"
        url = urlunsplit(parts._replace(path=path))
    else:
        url = route

    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise GenericError(f"Cannot build a request URL from base {base_url!r} and route {route!r}")

    if query_items:
        encoded = join_query_items(query_items)
        query = f"{parts.query}&{encoded}" if parts.query else encoded
        url = urlunsplit(parts._replace(query=query))
    return url


class RequestExecutor:
    """Runs prepared requests against a transport and an optional cache store.

    Args:
        transport: Sends requests over the network.
        store: Cache store; without one, cache criteria are ignored.
        logger: Receives debug traces of every request and response.
    """

    def __init__(
        self,
        transport: Transport,
        store: Optional[CacheStore] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.transport = transport
        self.store = store
        self.logger: Logger = logger if logger is not None else NullLogger()

    async def execute(
        self,
        request: PreparedRequest,
        criteria: Optional[CacheCriteria] = None,
    ) -> Optional[Result]:
        """Execute *request* under *criteria*.

        Returns:
            The response payload, or ``None`` when the response had no body.

        Raises:
            ServiceError: The classified failure; see
                :mod:`httpservice.exceptions`.
        """
        try:
            return await self._execute(request, criteria)
        except ServiceError as exc:
            self.logger.log(
                LogLevel.ERROR,
                f"{request.method.value} {request.url} failed: {exc}",
                {"error": type(exc).__name__},
            )
            raise

    async def _execute(
        self,
        request: PreparedRequest,
        criteria: Optional[CacheCriteria],
    ) -> Optional[Result]:
        store = self.store if criteria is not None else None
        key = request_key(request.method.value, request.url)

        if store is not None and criteria is not None:
            action = decide(criteria.policy, criteria.max_age, cache_available=True)
            entry: Optional[CachedEntry] = None
            if isinstance(action, ReadCacheFirst):
                entry = await asyncio.to_thread(store.lookup, key, action.max_age)
            elif isinstance(action, ReadCacheFirstNoAgeCheck):
                entry = await asyncio.to_thread(store.lookup, key, None)
            if entry is not None:
                self.logger.log(LogLevel.DEBUG, f"Cache hit for {request.method.value} {request.url}")
                return _entry_result(entry)

        try:
            return await self._dispatch(request, key, store)
        except ServiceError as exc:
            if store is None or criteria is None:
                raise
            action = decide(criteria.policy, criteria.max_age, cache_available=True, outcome=exc)
            if not isinstance(action, FallbackToCacheOnError):
                raise
            entry = await asyncio.to_thread(store.lookup, key, action.max_age)
            if entry is None:
                raise
            self.logger.log(
                LogLevel.NOTICE,
                f"Serving cached response for {request.method.value} {request.url} after: {exc}",
            )
            return _entry_result(entry)

    async def _dispatch(
        self,
        request: PreparedRequest,
        key: str,
        store: Optional[CacheStore],
    ) -> Optional[Result]:
        self._log_request(request)
        response = await self.transport.send(request)
        self._log_response(request, response)

        if not 200 <= response.status_code < 300:
            raise error_for_status(
                response.status_code, response.body or None, response.mime_type or None
            )

        if store is not None and response.body and is_cacheable(response.headers):
            entry = CachedEntry(
                status_code=response.status_code,
                headers=response.headers,
                mime_type=response.mime_type,
                body=response.body,
            )
            await asyncio.to_thread(store.store, key, entry)

        if not response.body:
            return None
        return Result(mime_type=response.mime_type, body=response.body)

    # ------------------------------------------------------------------ #
    # Tracing
    # ------------------------------------------------------------------ #

    def _log_request(self, request: PreparedRequest) -> None:
        log = self.logger.log
        log(LogLevel.DEBUG, _RULE)
        log(LogLevel.DEBUG, "HEADER", {f"<{k}>": v for k, v in request.headers.items()})
        log(LogLevel.DEBUG, f"REQUEST({request.method.value})", {"<Request>": request.url})
        if request.body is not None:
            log(LogLevel.DEBUG, "", {"<Body>": request.body.decode("utf-8", errors="replace")})
        log(LogLevel.DEBUG, _RULE)

    def _log_response(self, request: PreparedRequest, response: TransportResponse) -> None:
        log = self.logger.log
        log(LogLevel.DEBUG, _RULE)
        log(LogLevel.DEBUG, f"RESPONSE: HTTP STATUS: {response.status_code}")
        log(LogLevel.DEBUG, f"RESPONSE MIMETYPE: {response.mime_type}")
        log(LogLevel.DEBUG, f"FOR REQUEST({request.method.value})", {"<Request>": request.url})
        if response.mime_type == MimeType.BINARY.value:
            log(LogLevel.DEBUG, "RESPONSE DATA == <octet-stream binary data>")
        else:
            log(
                LogLevel.DEBUG,
                "RESPONSE DATA",
                {"<Data>": response.body.decode("utf-8", errors="replace") if response.body else "null"},
            )
        log(LogLevel.DEBUG, _RULE)


def _entry_result(entry: CachedEntry) -> Optional[Result]:
    if not entry.body:
        return None
    return Result(mime_type=entry.mime_type, body=entry.body)
