"""Transports -- the layer that actually talks to the network.

The executor depends only on the :class:`Transport` protocol: one
coroutine that sends a :class:`~httpservice.models.PreparedRequest` and
returns a :class:`~httpservice.models.TransportResponse`, raising
:class:`~httpservice.exceptions.NetworkError` for anything that prevented
a response from arriving. Non-2xx responses are *not* errors at this level.

:class:`HttpxTransport` is the default implementation, backed by
:class:`httpx.AsyncClient`. Cancelling the awaiting task cancels the
in-flight httpx call; :class:`asyncio.CancelledError` is never converted.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

import httpx

from httpservice.exceptions import GenericError, NetworkError, RequestTimeoutError
from httpservice.mime import parse_mime_type
from httpservice.models import PreparedRequest, TransportResponse


@runtime_checkable
class Transport(Protocol):
    """Sends one request and returns the raw response."""

    async def send(self, request: PreparedRequest) -> TransportResponse: ...


class HttpxTransport:
    """Transport backed by :class:`httpx.AsyncClient`.

    Must be used as an async context manager (or closed with
    :meth:`aclose`). The per-request timeout from
    :class:`~httpservice.models.PreparedRequest` overrides the client default.

    Args:
        verify_ssl: Verify TLS certificates.
        follow_redirects: Follow 3xx responses.
        timeout: Default timeout in seconds.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.

    Example::

        async with HttpxTransport() as transport:
            response = await transport.send(prepared)
    """

    def __init__(
        self,
        *,
        verify_ssl: bool = True,
        follow_redirects: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._verify_ssl = verify_ssl
        self._follow_redirects = follow_redirects
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> HttpxTransport:
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            verify=self._verify_ssl,
            follow_redirects=self._follow_redirects,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Transport protocol
    # ------------------------------------------------------------------ #

    async def send(self, request: PreparedRequest) -> TransportResponse:
        """Send *request*.

        Raises:
            RequestTimeoutError: If httpx timed out.
            NetworkError: On any other transport failure.
            GenericError: If the URL cannot be parsed.
        """
        assert self._client is not None, "Transport not open -- use as async context manager"

        try:
            response = await self._client.request(
                request.method.value,
                request.url,
                headers=request.headers,
                content=request.body,
                timeout=request.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"{request.method.value} {request.url} timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"{request.method.value} {request.url} failed: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise GenericError(f"Invalid URL '{request.url}': {exc}") from exc

        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers.items()),
            mime_type=parse_mime_type(response.headers.get("content-type")),
            body=response.content,
        )
