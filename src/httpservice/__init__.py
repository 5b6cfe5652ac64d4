"""httpservice -- a typed asynchronous HTTP client with conditional response caching.

The package turns typed values into requests and responses back into typed
values. Queries and bodies are produced by a structural encoder that walks
mappings, dataclasses and Pydantic models; responses are decoded through a
registry keyed by MIME type. Every request may carry
:class:`~httpservice.models.CacheCriteria` that decide whether a cached
response is served first, and whether one may stand in for an HTTP error.

Typical use::

    from httpservice import HTTPService, ServiceConfig

    async with HTTPService(ServiceConfig(base_url="https://api.example.com")) as service:
        user = await service.get_as("/users/1", User)

Modules:
    models: Pydantic models shared across the entire package.
    encoding: Structural, query, multipart and body encoders.
    cache: Cache policy decisions and response stores.
    decoders: MIME-keyed response decoders.
    transport: The httpx-backed transport.
    client: The request executor and the :class:`HTTPService` facade.
    config: XDG-aware configuration loading.
    exceptions: Exception hierarchy.
    log: Rich console logging.
"""

from httpservice.client import HTTPService
from httpservice.encoding import (
    BinaryBody,
    BinaryValue,
    EmptyBody,
    FileReference,
    FormURLEncodedBody,
    JSONBody,
    MultipartBody,
    MultipartForm,
    MultipartMixed,
    QueryParameters,
)
from httpservice.exceptions import HTTPResponseError, NetworkError, ServiceError
from httpservice.models import (
    CacheAge,
    CacheCriteria,
    CachePolicy,
    HTTPMethod,
    LogLevel,
    Result,
    ServiceConfig,
)

__version__ = "0.1.0"

__all__ = [
    "BinaryBody",
    "BinaryValue",
    "CacheAge",
    "CacheCriteria",
    "CachePolicy",
    "EmptyBody",
    "FileReference",
    "FormURLEncodedBody",
    "HTTPMethod",
    "HTTPResponseError",
    "HTTPService",
    "JSONBody",
    "LogLevel",
    "MultipartBody",
    "MultipartForm",
    "MultipartMixed",
    "NetworkError",
    "QueryParameters",
    "Result",
    "ServiceConfig",
    "ServiceError",
]
