"""Exception hierarchy for httpservice.

Every public operation either returns a value or raises exactly one
:class:`ServiceError` subclass. HTTP error responses are classified by status
code through :func:`error_for_status`; transport failures surface as
:class:`NetworkError` and are never reclassified as HTTP errors.

Subclass hierarchy::

    ServiceError
    +-- GenericError
    +-- CacheNotFoundError
    +-- UnrecognizedEncodingError   (mime_type)
    +-- HTTPResponseError           (status_code, body, content_type)
    |   +-- AuthError               (401, 403)
    |   +-- NotFoundError           (404, 410)
    |   +-- ClientError             (other 4xx)
    |   +-- ServerError             (5xx and other non-2xx)
    +-- NetworkError
    |   +-- RequestTimeoutError
    +-- DecodeError
    +-- EncodingError
    +-- ConfigError

File-system errors raised while reading a multipart file attachment are not
wrapped; they propagate as :class:`OSError`.
"""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base exception for all httpservice errors.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class GenericError(ServiceError):
    """Raised for unclassified failures, e.g. an unbuildable URL or a
    required value that came back as "no content"."""


class CacheNotFoundError(ServiceError):
    """Raised when a cache-only read finds no usable entry."""


class UnrecognizedEncodingError(ServiceError):
    """Raised when no decoder is registered for a response's MIME type."""

    def __init__(self, mime_type: str) -> None:
        super().__init__(f"No decoder registered for MIME type '{mime_type}'")
        self.mime_type = mime_type


class HTTPResponseError(ServiceError):
    """Raised when the server answers with a non-2xx status code.

    Attributes:
        status_code: The HTTP status code.
        body: The raw response body, if any.
        content_type: The response's MIME type, if declared.
    """

    def __init__(
        self,
        status_code: int,
        body: Optional[bytes] = None,
        content_type: Optional[str] = None,
    ) -> None:
        super().__init__(_describe_status(status_code, body))
        self.status_code = status_code
        self.body = body
        self.content_type = content_type


class AuthError(HTTPResponseError):
    """Raised on HTTP 401 / 403 (authentication or authorisation failed)."""


class NotFoundError(HTTPResponseError):
    """Raised on HTTP 404 / 410 (resource missing or gone)."""


class ClientError(HTTPResponseError):
    """Raised on any other HTTP 4xx status."""


class ServerError(HTTPResponseError):
    """Raised on HTTP 5xx and any non-2xx status outside the 4xx range."""


class NetworkError(ServiceError):
    """Raised on transport-level failures (DNS, connection refused, TLS).

    The originating transport exception is kept as ``__cause__``.
    """


class RequestTimeoutError(NetworkError):
    """Raised when the transport gave up waiting for a response."""


class DecodeError(ServiceError):
    """Raised when a registered decoder fails to decode a response body."""


class EncodingError(ServiceError):
    """Raised when a value cannot be encoded as a query or form body."""


class ConfigError(ServiceError):
    """Raised for configuration problems (invalid JSON, failed validation)."""


def error_for_status(
    status_code: int,
    body: Optional[bytes] = None,
    content_type: Optional[str] = None,
) -> HTTPResponseError:
    """Build the :class:`HTTPResponseError` subclass matching *status_code*."""
    if status_code in (401, 403):
        return AuthError(status_code, body, content_type)
    if status_code in (404, 410):
        return NotFoundError(status_code, body, content_type)
    if 400 <= status_code < 500:
        return ClientError(status_code, body, content_type)
    return ServerError(status_code, body, content_type)


def _describe_status(status_code: int, body: Optional[bytes]) -> str:
    prefix = f"HTTP {status_code}"
    if not body:
        return prefix
    snippet = body[:200].decode("utf-8", errors="replace").strip()
    return f"{prefix}: {snippet}" if snippet else prefix
