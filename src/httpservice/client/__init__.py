"""HTTP client module for httpservice.

Classes:
    :class:`HTTPService` -- the typed per-verb facade.
    :class:`RequestExecutor` -- the cache-aware request pipeline it drives.

Example::

    from httpservice.client import HTTPService

    async with HTTPService(config) as service:
        result = await service.get("/users")
"""

from httpservice.client.executor import RequestExecutor, resolve_url
from httpservice.client.service import HTTPService, parse_allow_header

__all__ = ["HTTPService", "RequestExecutor", "parse_allow_header", "resolve_url"]
