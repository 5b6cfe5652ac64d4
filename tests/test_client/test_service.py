"""Tests for the HTTPService facade, driven through httpx.MockTransport."""

from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import httpx
import pytest
from pydantic import BaseModel

from httpservice.cache.store import MemoryCacheStore
from httpservice.client import HTTPService, parse_allow_header
from httpservice.encoding import (
    FormURLEncodedBody,
    JSONBody,
    MultipartBody,
    MultipartForm,
    query_params,
)
from httpservice.exceptions import (
    DecodeError,
    EncodingError,
    GenericError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
    ServerError,
    UnrecognizedEncodingError,
)
from httpservice.log import NullLogger
from httpservice.models import CacheAge, CacheCriteria, CachePolicy, HTTPMethod, ServiceConfig
from httpservice.transport import HttpxTransport

BASE_URL = "https://api.example.com/v1"


class Item(BaseModel):
    id: int
    name: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Recorder:
    """httpx MockTransport handler that records requests."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


def _json_handler(payload: object = None, status_code: int = 200) -> Recorder:
    if payload is None:
        payload = {"id": 1, "name": "widget"}
    return Recorder(lambda request: httpx.Response(status_code, json=payload))


def _make_config(**overrides) -> ServiceConfig:
    return ServiceConfig(base_url=BASE_URL, **overrides)


class _ThreadRecordingForm(MultipartForm):
    """Records the thread each encode runs on."""

    def __init__(self) -> None:
        super().__init__()
        self.threads: list[int] = []

    def encode(self, fallback_types=None) -> bytes:
        self.threads.append(threading.get_ident())
        return super().encode(fallback_types)


class _ServiceHarness:
    """Opens an HttpxTransport over a handler and a service over that transport."""

    def __init__(
        self,
        handler: Recorder,
        config: Optional[ServiceConfig] = None,
        **service_kwargs,
    ) -> None:
        self.transport = HttpxTransport(transport=httpx.MockTransport(handler))
        self.config = config or _make_config()
        self.service_kwargs = service_kwargs

    async def __aenter__(self) -> HTTPService:
        await self.transport.__aenter__()
        self.service = HTTPService(
            self.config, transport=self.transport, logger=NullLogger(), **self.service_kwargs
        )
        return await self.service.__aenter__()

    async def __aexit__(self, *args: object) -> None:
        await self.service.__aexit__(*args)
        await self.transport.aclose()


# ---------------------------------------------------------------------------
# GET
# ---------------------------------------------------------------------------


class TestGet:
    @pytest.mark.asyncio
    async def test_get_as_model(self) -> None:
        handler = _json_handler()
        async with _ServiceHarness(handler) as service:
            item = await service.get_as("/items/1", Item)
        assert item == Item(id=1, name="widget")
        assert str(handler.requests[0].url) == f"{BASE_URL}/items/1"
        assert handler.requests[0].method == "GET"

    @pytest.mark.asyncio
    async def test_query_and_config_headers(self) -> None:
        handler = _json_handler([])
        config = _make_config(headers={"Accept": "application/json", "X-Api-Key": "k"})
        async with _ServiceHarness(handler, config) as service:
            items = await service.get_as(
                "items", list[Item], {"page": 2, "tags": ["a", "b"]}, headers={"X-Api-Key": "override"}
            )
        assert items == []
        request = handler.requests[0]
        assert str(request.url) == f"{BASE_URL}/items?page=2&tags=a&tags=b"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["X-Api-Key"] == "override"

    @pytest.mark.asyncio
    async def test_query_parameters(self) -> None:
        handler = _json_handler([])
        async with _ServiceHarness(handler) as service:
            await service.get("search", query_params(("q", "a b"), ("q", "c")))
        assert handler.requests[0].url.query == b"q=a%20b&q=c"

    @pytest.mark.asyncio
    async def test_get_sends_no_content_type(self) -> None:
        handler = _json_handler()
        async with _ServiceHarness(handler) as service:
            await service.get("/items/1")
        assert "content-type" not in handler.requests[0].headers

    @pytest.mark.asyncio
    async def test_raw_result(self) -> None:
        handler = Recorder(lambda r: httpx.Response(200, content=b"hi", headers={"Content-Type": "text/plain; charset=utf-8"}))
        async with _ServiceHarness(handler) as service:
            result = await service.get("/greeting")
        assert result.mime_type == "text/plain"
        assert result.body == b"hi"

    @pytest.mark.asyncio
    async def test_no_content(self) -> None:
        handler = Recorder(lambda r: httpx.Response(204))
        async with _ServiceHarness(handler) as service:
            assert await service.get("/items/1") is None
            assert await service.get_optional("/items/1", Item) is None
            with pytest.raises(GenericError):
                await service.get_as("/items/1", Item)

    @pytest.mark.asyncio
    async def test_unknown_mime_type(self) -> None:
        handler = Recorder(lambda r: httpx.Response(200, content=b"<x/>", headers={"Content-Type": "application/xml"}))
        async with _ServiceHarness(handler) as service:
            with pytest.raises(UnrecognizedEncodingError) as excinfo:
                await service.get_as("/items/1", Item)
        assert excinfo.value.mime_type == "application/xml"

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        handler = Recorder(lambda r: httpx.Response(200, content=b"{oops", headers={"Content-Type": "application/json"}))
        async with _ServiceHarness(handler) as service:
            with pytest.raises(DecodeError):
                await service.get_as("/items/1", Item)

    @pytest.mark.asyncio
    async def test_decode_on_executor(self) -> None:
        handler = _json_handler()
        with ThreadPoolExecutor(max_workers=1) as pool:
            async with _ServiceHarness(handler, decode_executor=pool) as service:
                item = await service.get_as("/items/1", Item)
        assert item.name == "widget"

    @pytest.mark.asyncio
    async def test_http_error_classified(self) -> None:
        handler = Recorder(lambda r: httpx.Response(404, json={"detail": "missing"}))
        async with _ServiceHarness(handler) as service:
            with pytest.raises(NotFoundError) as excinfo:
                await service.get_as("/items/9", Item)
        assert excinfo.value.status_code == 404
        assert b"missing" in excinfo.value.body


# ---------------------------------------------------------------------------
# Bodies
# ---------------------------------------------------------------------------


class TestBodies:
    @pytest.mark.asyncio
    async def test_post_json(self) -> None:
        handler = Recorder(lambda r: httpx.Response(201, content=r.content, headers={"Content-Type": "application/json"}))
        async with _ServiceHarness(handler) as service:
            created = await service.post_as("/items", Item, JSONBody(Item(id=2, name="gadget")))
        request = handler.requests[0]
        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"id": 2, "name": "gadget"}
        assert created.id == 2

    @pytest.mark.asyncio
    async def test_post_without_body(self) -> None:
        handler = Recorder(lambda r: httpx.Response(204))
        async with _ServiceHarness(handler) as service:
            assert await service.post("/items/1/touch") is None
        request = handler.requests[0]
        assert request.headers["Content-Type"] == "text/plain"
        assert request.content == b""

    @pytest.mark.asyncio
    async def test_body_content_type_replaces_configured_one(self) -> None:
        handler = Recorder(lambda r: httpx.Response(204))
        config = _make_config(headers={"content-type": "application/xml"})
        async with _ServiceHarness(handler, config) as service:
            await service.put("/items/1", JSONBody({"name": "x"}))
        request = handler.requests[0]
        assert request.method == "PUT"
        assert request.headers.get_list("content-type") == ["application/json"]

    @pytest.mark.asyncio
    async def test_form_urlencoded(self) -> None:
        handler = Recorder(lambda r: httpx.Response(204))
        async with _ServiceHarness(handler) as service:
            await service.post("/login", FormURLEncodedBody({"user": "a b", "pin": 12}))
        request = handler.requests[0]
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert request.content == b"user=a%20b&pin=12"

    @pytest.mark.asyncio
    async def test_multipart_uses_service_content_types(self, tmp_path) -> None:
        photo = tmp_path / "me.jpg"
        photo.write_bytes(b"jpeg")
        handler = Recorder(lambda r: httpx.Response(204))
        async with _ServiceHarness(handler) as service:
            form = MultipartForm().add_text("caption", "hello").add_file("photo", photo)
            await service.post("/photos", MultipartBody(form))
        request = handler.requests[0]
        assert request.headers["Content-Type"].startswith(
            "multipart/form-data; boundary=httpservice.multipart.boundary."
        )
        assert b'filename="me.jpg"\r\nContent-Type: image/jpg\r\n' in request.content

    @pytest.mark.asyncio
    async def test_multipart_encoded_off_event_loop(self) -> None:
        handler = Recorder(lambda r: httpx.Response(204))
        form = _ThreadRecordingForm().add_text("caption", "hello")
        async with _ServiceHarness(handler) as service:
            await service.post("/photos", MultipartBody(form))
        assert form.threads
        assert threading.get_ident() not in form.threads

    @pytest.mark.asyncio
    async def test_encoding_failure_sends_nothing(self) -> None:
        handler = _json_handler()
        async with _ServiceHarness(handler) as service:
            with pytest.raises(EncodingError):
                await service.post("/items", JSONBody({"x": object()}))
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_missing_file_sends_nothing(self, tmp_path) -> None:
        handler = _json_handler()
        async with _ServiceHarness(handler) as service:
            form = MultipartForm().add_file("f", tmp_path / "missing.bin")
            with pytest.raises(FileNotFoundError):
                await service.post("/upload", MultipartBody(form))
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_patch_discards_body(self) -> None:
        handler = _json_handler()
        async with _ServiceHarness(handler) as service:
            assert await service.patch("/items/1", JSONBody({"name": "x"})) is None
            item = await service.patch_as("/items/1", Item, JSONBody({"name": "x"}))
        assert [r.method for r in handler.requests] == ["PATCH", "PATCH"]
        assert item.id == 1

    @pytest.mark.asyncio
    async def test_delete_optional(self) -> None:
        handler = Recorder(lambda r: httpx.Response(204))
        async with _ServiceHarness(handler) as service:
            assert await service.delete_optional("/items/1", Item) is None
        assert handler.requests[0].method == "DELETE"


# ---------------------------------------------------------------------------
# HEAD / OPTIONS
# ---------------------------------------------------------------------------


class TestHeadAndOptions:
    @pytest.mark.asyncio
    async def test_head_success(self) -> None:
        handler = Recorder(lambda r: httpx.Response(200))
        async with _ServiceHarness(handler) as service:
            assert await service.head("/items/1") is None
        assert handler.requests[0].method == "HEAD"

    @pytest.mark.asyncio
    async def test_head_not_found(self) -> None:
        handler = Recorder(lambda r: httpx.Response(404))
        async with _ServiceHarness(handler) as service:
            with pytest.raises(NotFoundError):
                await service.head("/items/1")

    @pytest.mark.asyncio
    async def test_options_parses_allow(self) -> None:
        handler = Recorder(lambda r: httpx.Response(200, headers={"Allow": "GET, post ,BREW,DELETE"}))
        async with _ServiceHarness(handler) as service:
            methods = await service.options("/items")
        assert methods == [HTTPMethod.GET, HTTPMethod.POST, HTTPMethod.DELETE]
        assert handler.requests[0].method == "OPTIONS"

    @pytest.mark.asyncio
    async def test_options_ignores_status(self) -> None:
        handler = Recorder(lambda r: httpx.Response(405, headers={"Allow": "GET"}))
        async with _ServiceHarness(handler) as service:
            assert await service.options("/items") == [HTTPMethod.GET]

    @pytest.mark.asyncio
    async def test_options_without_header(self) -> None:
        handler = Recorder(lambda r: httpx.Response(200))
        async with _ServiceHarness(handler) as service:
            assert await service.options("/items") == []

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, []),
            ("", []),
            ("GET,HEAD", [HTTPMethod.GET, HTTPMethod.HEAD]),
            (" options , connect ", [HTTPMethod.OPTIONS, HTTPMethod.CONNECT]),
        ],
    )
    def test_parse_allow_header(self, value: Optional[str], expected: list[HTTPMethod]) -> None:
        assert parse_allow_header(value) == expected


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    @pytest.mark.asyncio
    async def test_use_age_serves_second_call_from_cache(self) -> None:
        handler = _json_handler()
        criteria = CacheCriteria(policy=CachePolicy.USE_AGE, max_age=CacheAge.ONE_HOUR)
        async with _ServiceHarness(handler, cache_store=MemoryCacheStore()) as service:
            first = await service.get_as("/items/1", Item, cache_criteria=criteria)
            second = await service.get_as("/items/1", Item, cache_criteria=criteria)
        assert first == second
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_fallback_on_server_error(self) -> None:
        responses = iter([httpx.Response(200, json={"id": 1, "name": "widget"}), httpx.Response(503)])
        handler = Recorder(lambda r: next(responses))
        criteria = CacheCriteria(policy=CachePolicy.RELOAD_RETURN_CACHE_DATA_IF_ERROR)
        async with _ServiceHarness(handler, cache_store=MemoryCacheStore()) as service:
            await service.get_as("/items/1", Item, cache_criteria=criteria)
            item = await service.get_as("/items/1", Item, cache_criteria=criteria)
        assert item.name == "widget"
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_without_criteria_error_propagates(self) -> None:
        responses = iter([httpx.Response(200, json={"id": 1, "name": "w"}), httpx.Response(500)])
        handler = Recorder(lambda r: next(responses))
        async with _ServiceHarness(handler, cache_store=MemoryCacheStore()) as service:
            await service.get("/items/1")
            with pytest.raises(ServerError):
                await service.get("/items/1")

    @pytest.mark.asyncio
    async def test_disk_store_from_config_is_owned(self, tmp_path) -> None:
        handler = _json_handler()
        config = _make_config(cache={"enabled": True, "directory": str(tmp_path)})
        async with _ServiceHarness(handler, config) as service:
            store = service.cache_store
            assert store is not None
            criteria = CacheCriteria(policy=CachePolicy.RETURN_CACHE_DATA_ELSE_LOAD)
            await service.get("/items/1", cache_criteria=criteria)
            await service.get("/items/1", cache_criteria=criteria)
        assert len(handler.requests) == 1
        assert (tmp_path / "responses").is_dir()


# ---------------------------------------------------------------------------
# Transport failures and lifecycle
# ---------------------------------------------------------------------------


class TestTransport:
    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with _ServiceHarness(Recorder(respond)) as service:
            with pytest.raises(RequestTimeoutError) as excinfo:
                await service.get("/slow")
        assert isinstance(excinfo.value.__cause__, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_connect_error(self) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _ServiceHarness(Recorder(respond)) as service:
            with pytest.raises(NetworkError) as excinfo:
                await service.get("/down")
        assert not isinstance(excinfo.value, RequestTimeoutError)

    @pytest.mark.asyncio
    async def test_relative_route_without_base(self) -> None:
        handler = _json_handler()
        async with _ServiceHarness(handler, ServiceConfig()) as service:
            with pytest.raises(GenericError):
                await service.get("/items")
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_owned_transport_lifecycle(self) -> None:
        service = HTTPService(_make_config(), logger=NullLogger())
        owned = service._owned_transport
        assert owned is not None
        async with service:
            assert owned._client is not None
        assert owned._client is None

    def test_prepare_without_opening(self) -> None:
        service = HTTPService(_make_config(), logger=NullLogger())
        prepared = service.prepare(HTTPMethod.GET, "/items")
        assert prepared.url == f"{BASE_URL}/items"
        assert prepared.timeout == 30.0
