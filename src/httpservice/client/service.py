"""The :class:`HTTPService` facade.

One method family per HTTP verb. Each family comes in up to three flavours:

* ``get`` -- the raw :class:`~httpservice.models.Result` (``None`` for no content).
* ``get_as`` -- decoded into a target type; "no content" is a
  :class:`~httpservice.exceptions.GenericError`.
* ``get_optional`` -- decoded into a target type; "no content" is ``None``.

Queries may be :class:`~httpservice.encoding.query.QueryParameters`, a
mapping, or any value the structural encoder can walk. Bodies are
:class:`~httpservice.encoding.body.RequestBody` variants; for ``post``,
``put`` and ``patch`` a missing body is sent as
:class:`~httpservice.encoding.body.EmptyBody`. Query and body encoding
happen before the request is dispatched, so encoding failures never
produce network traffic.

Example::

    config = ServiceConfig(base_url="https://api.example.com/v1")
    async with HTTPService(config) as service:
        item = await service.get_as(
            "/items/42",
            Item,
            cache_criteria=CacheCriteria(policy=CachePolicy.USE_AGE, max_age=CacheAge.ONE_HOUR),
        )
        await service.post("/items", JSONBody(item))
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from concurrent.futures import Executor
from typing import Any, Optional, TypeVar

from httpservice.cache.store import CacheStore, open_store
from httpservice.client.executor import RequestExecutor, resolve_url
from httpservice.decoders import Decoder, decode, decode_optional, default_decoders
from httpservice.encoding.body import EmptyBody, MultipartBody, RequestBody
from httpservice.encoding.query import to_query_items
from httpservice.log import Logger, get_logger
from httpservice.models import CacheCriteria, HTTPMethod, PreparedRequest, Result, ServiceConfig
from httpservice.transport import HttpxTransport, Transport

T = TypeVar("T")


def parse_allow_header(value: Optional[str]) -> list[HTTPMethod]:
    """Parse an ``Allow`` header value, skipping tokens that are not known methods."""
    if not value:
        return []
    methods: list[HTTPMethod] = []
    for token in value.split(","):
        try:
            methods.append(HTTPMethod(token.strip().upper()))
        except ValueError:
            continue
    return methods


class HTTPService:
    """Typed asynchronous HTTP client.

    Must be used as an async context manager. Collaborators not passed in
    are built from *config* and owned by the service: an
    :class:`~httpservice.transport.HttpxTransport`, a disk cache store when
    ``config.cache.enabled`` is set, the default decoder registry, and the
    process-wide logger. Owned collaborators are closed on exit; the caller
    manages the lifetime of anything it passes in.

    Args:
        config: Connection settings; defaults to ``ServiceConfig()``.
        transport: Sends requests; must already be open if supplied.
        cache_store: Response cache store.
        decoders: MIME type to decoder registry.
        logger: Receives request traces.
        decode_executor: When given, decoding runs on this executor instead
            of inline on the event loop.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        transport: Optional[Transport] = None,
        cache_store: Optional[CacheStore] = None,
        decoders: Optional[Mapping[str, Decoder]] = None,
        logger: Optional[Logger] = None,
        decode_executor: Optional[Executor] = None,
    ) -> None:
        self.config = config or ServiceConfig()
        self.decoders: dict[str, Decoder] = (
            dict(decoders) if decoders is not None else default_decoders()
        )
        self._decode_executor = decode_executor
        self._owned_transport: Optional[HttpxTransport] = None
        if transport is None:
            self._owned_transport = HttpxTransport(
                verify_ssl=self.config.verify_ssl,
                follow_redirects=self.config.follow_redirects,
                timeout=self.config.timeout,
            )
            transport = self._owned_transport
        self._owns_store = cache_store is None
        store = cache_store if cache_store is not None else open_store(self.config.cache)
        self._executor = RequestExecutor(
            transport,
            store,
            logger if logger is not None else get_logger(self.config.log_level),
        )

    @property
    def cache_store(self) -> Optional[CacheStore]:
        return self._executor.store

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> HTTPService:
        if self._owned_transport is not None:
            await self._owned_transport.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._owned_transport is not None:
            await self._owned_transport.aclose()
        if self._owns_store and self._executor.store is not None:
            self._executor.store.close()

    # ------------------------------------------------------------------ #
    # Core
    # ------------------------------------------------------------------ #

    def prepare(
        self,
        method: HTTPMethod,
        route: str,
        *,
        query: Any = None,
        body: Optional[RequestBody] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> PreparedRequest:
        """Encode the query and body and build the wire-level request.

        Raises:
            EncodingError: If the query or body cannot be encoded.
            GenericError: If no absolute URL can be built.
            OSError: If a multipart file attachment cannot be read.
        """
        url = resolve_url(self.config.base_url, route, to_query_items(query))
        merged = {**self.config.headers, **(headers or {})}
        content: Optional[bytes] = None
        if body is not None:
            encoded = body.encode(self.config.content_types)
            merged = {k: v for k, v in merged.items() if k.lower() != "content-type"}
            merged["Content-Type"] = encoded.content_type
            content = encoded.content
        return PreparedRequest(
            method=HTTPMethod(method),
            url=url,
            headers=merged,
            body=content,
            timeout=self.config.timeout,
        )

    async def request(
        self,
        method: HTTPMethod,
        route: str,
        *,
        query: Any = None,
        body: Optional[RequestBody] = None,
        cache_criteria: Optional[CacheCriteria] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Result]:
        """Send a request and return its raw result.

        Args:
            method: HTTP method.
            route: Path resolved against ``config.base_url``.
            query: Query parameters or an encodable query value.
            body: Request body; ``None`` sends no body and no ``Content-Type``.
            cache_criteria: Cache policy and maximum age for this request.
            headers: Extra headers, overriding ``config.headers``.

        Returns:
            The :class:`~httpservice.models.Result`, or ``None`` for no content.

        Raises:
            ServiceError: See :mod:`httpservice.exceptions`.
        """
        if isinstance(body, MultipartBody):
            # file parts are read while encoding
            prepared = await asyncio.to_thread(
                self.prepare, method, route, query=query, body=body, headers=headers
            )
        else:
            prepared = self.prepare(method, route, query=query, body=body, headers=headers)
        return await self._executor.execute(prepared, cache_criteria)

    async def _decode(self, result: Optional[Result], target: type[T], optional: bool) -> Any:
        func = decode_optional if optional else decode
        if self._decode_executor is None:
            return func(result, target, self.decoders)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._decode_executor, func, result, target, self.decoders)

    # ------------------------------------------------------------------ #
    # GET
    # ------------------------------------------------------------------ #

    async def get(
        self,
        route: str,
        query: Any = None,
        *,
        cache_criteria: Optional[CacheCriteria] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Result]:
        return await self.request(
            HTTPMethod.GET, route, query=query, cache_criteria=cache_criteria, headers=headers
        )

    async def get_as(
        self,
        route: str,
        target: type[T],
        query: Any = None,
        *,
        cache_criteria: Optional[CacheCriteria] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> T:
        """GET *route* and decode the body into *target*."""
        result = await self.get(route, query, cache_criteria=cache_criteria, headers=headers)
        return await self._decode(result, target, optional=False)

    async def get_optional(
        self,
        route: str,
        target: type[T],
        query: Any = None,
        *,
        cache_criteria: Optional[CacheCriteria] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[T]:
        """GET *route*; ``None`` when the response had no content."""
        result = await self.get(route, query, cache_criteria=cache_criteria, headers=headers)
        return await self._decode(result, target, optional=True)

    # ------------------------------------------------------------------ #
    # POST / PUT / PATCH
    # ------------------------------------------------------------------ #

    async def post(
        self,
        route: str,
        body: Optional[RequestBody] = None,
        *,
        query: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Result]:
        return await self.request(
            HTTPMethod.POST, route, query=query, body=body or EmptyBody(), headers=headers
        )

    async def post_as(
        self,
        route: str,
        target: type[T],
        body: Optional[RequestBody] = None,
        *,
        query: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> T:
        result = await self.post(route, body, query=query, headers=headers)
        return await self._decode(result, target, optional=False)

    async def post_optional(
        self,
        route: str,
        target: type[T],
        body: Optional[RequestBody] = None,
        *,
        query: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[T]:
        result = await self.post(route, body, query=query, headers=headers)
        return await self._decode(result, target, optional=True)

    async def put(
        self,
        route: str,
        body: Optional[RequestBody] = None,
        *,
        query: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Result]:
        return await self.request(
            HTTPMethod.PUT, route, query=query, body=body or EmptyBody(), headers=headers
        )

    async def put_as(
        self,
        route: str,
        target: type[T],
        body: Optional[RequestBody] = None,
        *,
        query: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> T:
        result = await self.put(route, body, query=query, headers=headers)
        return await self._decode(result, target, optional=False)

    async def put_optional(
        self,
        route: str,
        target: type[T],
        body: Optional[RequestBody] = None,
        *,
        query: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[T]:
        result = await self.put(route, body, query=query, headers=headers)
        return await self._decode(result, target, optional=True)

    async def patch(
        self,
        route: str,
        body: Optional[RequestBody] = None,
        *,
        query: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """PATCH *route*, discarding any response body."""
        await self.request(
            HTTPMethod.PATCH, route, query=query, body=body or EmptyBody(), headers=headers
        )

    async def patch_as(
        self,
        route: str,
        target: type[T],
        body: Optional[RequestBody] = None,
        *,
        query: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> T:
        result = await self.request(
            HTTPMethod.PATCH, route, query=query, body=body or EmptyBody(), headers=headers
        )
        return await self._decode(result, target, optional=False)

    # ------------------------------------------------------------------ #
    # DELETE / HEAD / OPTIONS
    # ------------------------------------------------------------------ #

    async def delete(
        self,
        route: str,
        query: Any = None,
        *,
        cache_criteria: Optional[CacheCriteria] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Result]:
        return await self.request(
            HTTPMethod.DELETE, route, query=query, cache_criteria=cache_criteria, headers=headers
        )

    async def delete_as(
        self,
        route: str,
        target: type[T],
        query: Any = None,
        *,
        cache_criteria: Optional[CacheCriteria] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> T:
        result = await self.delete(route, query, cache_criteria=cache_criteria, headers=headers)
        return await self._decode(result, target, optional=False)

    async def delete_optional(
        self,
        route: str,
        target: type[T],
        query: Any = None,
        *,
        cache_criteria: Optional[CacheCriteria] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[T]:
        result = await self.delete(route, query, cache_criteria=cache_criteria, headers=headers)
        return await self._decode(result, target, optional=True)

    async def head(self, route: str, *, headers: Optional[Mapping[str, str]] = None) -> None:
        """HEAD *route*. Raises on a non-2xx status."""
        await self.request(HTTPMethod.HEAD, route, headers=headers)

    async def options(
        self, route: str, *, headers: Optional[Mapping[str, str]] = None
    ) -> list[HTTPMethod]:
        """Return the methods listed in the ``Allow`` header of an OPTIONS response.

        The response status is not checked and the cache is never consulted.
        A missing header yields ``[]``.

        Raises:
            NetworkError: If no response arrived.
        """
        prepared = self.prepare(HTTPMethod.OPTIONS, route, headers=headers)
        response = await self._executor.transport.send(prepared)
        return parse_allow_header(response.header("Allow"))
