"""Canonical Pydantic models shared across all httpservice modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig` and :class:`ServiceConfig`.

**Cache models** -- attached to requests or persisted by a cache store:
    :class:`CachePolicy`, :class:`CacheAge`, :class:`CacheCriteria`, and
    :class:`CachedEntry`.

**Wire models** -- produced and consumed while executing a request:
    :class:`HTTPMethod`, :class:`LogLevel`, :class:`PreparedRequest`,
    :class:`TransportResponse`, and :class:`Result`.

All models use Pydantic v2. Models that travel with a request
(:class:`CacheCriteria`, :class:`PreparedRequest`) are frozen so that nothing
downstream can mutate them.
"""

from __future__ import annotations

import enum
import math
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Enumerations ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods a service can send.

    ``CONNECT`` is only ever produced by parsing an ``Allow`` header; the
    service never sends it.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    CONNECT = "CONNECT"


class LogLevel(str, enum.Enum):
    """Severity levels understood by :class:`~httpservice.log.Logger` sinks.

    Members are declared from least to most severe; :attr:`severity`
    exposes that ordering for level filtering.
    """

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return list(LogLevel).index(self)


class CachePolicy(str, enum.Enum):
    """How a request interacts with the cache store.

    * ``USE_AGE`` -- serve a fresh cached entry without touching the network,
      otherwise load from the network.
    * ``USE_AGE_RETURN_CACHE_DATA_IF_ERROR`` -- always load from the network;
      on an HTTP error, fall back to any cached entry.
    * ``RETURN_CACHE_DATA_ELSE_LOAD`` -- serve any cached entry regardless of
      age, otherwise load from the network.
    * ``RELOAD_RETURN_CACHE_DATA_IF_ERROR`` -- always load from the network;
      on an HTTP error, fall back to any cached entry.
    * ``RELOAD_RETURN_CACHE_DATA_WITH_AGE_CHECK_IF_ERROR`` -- always load from
      the network; on an HTTP error, fall back to a cached entry only if it is
      still fresh.
    """

    USE_AGE = "use_age"
    USE_AGE_RETURN_CACHE_DATA_IF_ERROR = "use_age_return_cache_data_if_error"
    RETURN_CACHE_DATA_ELSE_LOAD = "return_cache_data_else_load"
    RELOAD_RETURN_CACHE_DATA_IF_ERROR = "reload_return_cache_data_if_error"
    RELOAD_RETURN_CACHE_DATA_WITH_AGE_CHECK_IF_ERROR = (
        "reload_return_cache_data_with_age_check_if_error"
    )


class CacheAge:
    """Common ``max_age`` values, in seconds."""

    NOW = 0.0
    ONE_MINUTE = 60.0
    ONE_HOUR = 60.0 * 60
    ONE_DAY = 60.0 * 60 * 24
    IMMORTAL = math.inf
    """Disables the staleness check entirely."""


# --- Configuration Models ---


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`ServiceConfig`."""

    enabled: bool = Field(default=False, description="Enable the disk cache store")
    directory: Optional[str] = Field(
        default=None,
        description="Cache directory; defaults to the XDG cache directory",
    )


class ServiceConfig(BaseModel):
    """Connection settings for one :class:`~httpservice.client.HTTPService`.

    Loaded and saved by :func:`~httpservice.config.load_config` and
    :func:`~httpservice.config.save_config`. See
    :func:`~httpservice.config.resolve_config` for the precedence chain that
    lets environment variables and explicit arguments override stored values.

    Example::

        ServiceConfig(
            base_url="https://api.example.com/v1",
            headers={"Accept": "application/json"},
            timeout=10,
        )
    """

    base_url: Optional[str] = Field(
        default=None, description="Base URL every route is resolved against"
    )
    headers: dict[str, str] = Field(
        default_factory=dict, description="Headers sent with every request"
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    follow_redirects: bool = Field(default=True, description="Follow 3xx redirects")
    content_types: dict[str, str] = Field(
        default_factory=lambda: {"jpg": "image/jpg", "png": "image/png"},
        description="File extension to MIME type overrides for multipart uploads",
    )
    cache: CacheConfig = Field(default_factory=CacheConfig)
    log_level: LogLevel = Field(default=LogLevel.INFO)


# --- Cache Models ---


class CacheCriteria(BaseModel):
    """Cache policy and maximum age attached to a single request.

    Example::

        CacheCriteria(policy=CachePolicy.USE_AGE, max_age=CacheAge.ONE_HOUR)
    """

    model_config = ConfigDict(frozen=True)

    policy: CachePolicy
    max_age: float = Field(default=CacheAge.IMMORTAL, ge=0)


class CachedEntry(BaseModel):
    """A response persisted by a cache store.

    ``stored_at`` records when the entry was written. Freshness is judged
    from the response's ``Date`` header, see
    :func:`~httpservice.cache.store.is_fresh`.
    """

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    mime_type: str = ""
    body: bytes = b""
    stored_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        return find_header(self.headers, name)


# --- Wire Models ---


class PreparedRequest(BaseModel):
    """A fully encoded request, ready to hand to a transport."""

    model_config = ConfigDict(frozen=True)

    method: HTTPMethod
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = None
    timeout: float = 30.0


class TransportResponse(BaseModel):
    """Status, headers, MIME type and body returned by a transport."""

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    mime_type: str = ""
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        return find_header(self.headers, name)


class Result(BaseModel):
    """Raw response payload handed to decoders.

    A request that produced no content yields ``None`` instead of a
    ``Result``.
    """

    model_config = ConfigDict(frozen=True)

    mime_type: str
    body: bytes


def find_header(headers: dict[str, str], name: str) -> Optional[str]:
    """Return the value of header *name*, ignoring case, or ``None``."""
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
