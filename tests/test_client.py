from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from fuzzysearch.core.errors import (
    ApiError,
    DecodeError,
    RequestInvalidError,
    ServiceUnavailableError,
    UnauthorizedError,
)
from fuzzysearch.core.tracing import trace_context
from fuzzysearch.domain.entities import MatchType
from fuzzysearch.domain.models import Matches, Site
from fuzzysearch.infrastructure.http.fuzzysearch_client import FuzzySearchClient


def _recording(response: httpx.Response | Callable[[httpx.Request], Any], seen: list[httpx.Request]):
    def handler(request: httpx.Request):
        seen.append(request)
        if callable(response):
            return response(request)
        return response

    return handler


def _api(http: httpx.AsyncClient, **kwargs: Any) -> FuzzySearchClient:
    kwargs.setdefault("api_key", "secret-key")
    return FuzzySearchClient(http_client=http, **kwargs)


@pytest.mark.asyncio
async def test_lookup_url_sends_key_and_query(make_file) -> None:
    seen: list[httpx.Request] = []
    body = [make_file(site="FurAffinity", site_info={"file_id": 7})]
    transport = httpx.MockTransport(_recording(httpx.Response(200, json=body), seen))

    async with httpx.AsyncClient(transport=transport) as http:
        files = await _api(http).lookup_url("https://d.furaffinity.net/art/a/1.png")

    assert len(seen) == 1
    req = seen[0]
    assert req.method == "GET"
    assert req.url.scheme == "https"
    assert req.url.host == "api.fuzzysearch.net"
    assert req.url.path == "/file"
    assert req.url.params["url"] == "https://d.furaffinity.net/art/a/1.png"
    assert req.headers["X-Api-Key"] == "secret-key"
    assert "b3" not in req.headers
    assert files[0].site is Site.FURAFFINITY


@pytest.mark.asyncio
async def test_lookup_filename_uses_name_param() -> None:
    seen: list[httpx.Request] = []
    transport = httpx.MockTransport(_recording(httpx.Response(200, json=[]), seen))

    async with httpx.AsyncClient(transport=transport) as http:
        files = await _api(http).lookup_filename("nope")

    assert files == []
    assert seen[0].url.path == "/file"
    assert dict(seen[0].url.params) == {"name": "nope"}


@pytest.mark.asyncio
async def test_lookup_hashes_joins_with_commas(make_file) -> None:
    seen: list[httpx.Request] = []
    body = [make_file(site="Twitter", artists=["alice"], hash=-2, distance=0, searched_hash=-2)]
    transport = httpx.MockTransport(_recording(httpx.Response(200, json=body), seen))

    async with httpx.AsyncClient(transport=transport) as http:
        files = await _api(http).lookup_hashes([1, -2, 3])

    assert seen[0].url.path == "/hashes"
    assert seen[0].url.params["hashes"] == "1,-2,3"
    assert files[0].searched_hash == -2


@pytest.mark.asyncio
@pytest.mark.parametrize("hashes", [[], [True], [2**63], ["1"]])
async def test_lookup_hashes_rejects_bad_input(hashes: list) -> None:
    seen: list[httpx.Request] = []
    transport = httpx.MockTransport(_recording(httpx.Response(200, json=[]), seen))

    async with httpx.AsyncClient(transport=transport) as http:
        with pytest.raises(RequestInvalidError):
            await _api(http).lookup_hashes(hashes)

    assert seen == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("match_type", "expected"),
    [(MatchType.CLOSE, "close"), (MatchType.EXACT, "exact"), (MatchType.FORCE, "force")],
)
async def test_image_search_posts_multipart(make_file, match_type: MatchType, expected: str) -> None:
    seen: list[httpx.Request] = []
    body = {"hash": 42, "matches": [make_file(site="e621", distance=1)]}
    transport = httpx.MockTransport(_recording(httpx.Response(200, json=body), seen))
    image = b"\x89PNG\r\n\x1a\nnot-really-a-png"

    async with httpx.AsyncClient(transport=transport) as http:
        result = await _api(http).image_search(image, match_type)

    req = seen[0]
    assert req.method == "POST"
    assert req.url.path == "/image"
    assert req.url.params["type"] == expected
    assert req.headers["content-type"].startswith("multipart/form-data")
    assert b'name="image"' in req.content
    assert image in req.content
    assert isinstance(result, Matches)
    assert result.hash == 42
    assert result.matches[0].source_url() == "https://e621.net/posts/12345"


@pytest.mark.asyncio
async def test_image_search_defaults_to_close() -> None:
    seen: list[httpx.Request] = []
    transport = httpx.MockTransport(_recording(httpx.Response(200, json={"hash": 1, "matches": []}), seen))

    async with httpx.AsyncClient(transport=transport) as http:
        result = await _api(http).image_search(b"data")

    assert seen[0].url.params["type"] == "close"
    assert result.matches == ()


@pytest.mark.asyncio
async def test_image_search_rejects_empty_data() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"hash": 1, "matches": []}))
    async with httpx.AsyncClient(transport=transport) as http:
        with pytest.raises(RequestInvalidError):
            await _api(http).image_search(b"")


@pytest.mark.asyncio
async def test_trace_header_is_propagated() -> None:
    seen: list[httpx.Request] = []
    transport = httpx.MockTransport(_recording(httpx.Response(200, json=[]), seen))

    async with httpx.AsyncClient(transport=transport) as http:
        api = _api(http)
        with trace_context("a" * 32, "b" * 16):
            await api.lookup_filename("x")
        await api.lookup_filename("y")

    assert seen[0].headers["b3"] == f"{'a' * 32}-{'b' * 16}-1"
    assert "b3" not in seen[1].headers


@pytest.mark.asyncio
async def test_trace_header_can_be_disabled() -> None:
    seen: list[httpx.Request] = []
    transport = httpx.MockTransport(_recording(httpx.Response(200, json=[]), seen))

    async with httpx.AsyncClient(transport=transport) as http:
        with trace_context():
            await _api(http, trace_propagation=False).lookup_filename("x")

    assert "b3" not in seen[0].headers


@pytest.mark.asyncio
async def test_custom_endpoint() -> None:
    seen: list[httpx.Request] = []
    transport = httpx.MockTransport(_recording(httpx.Response(200, json=[]), seen))

    async with httpx.AsyncClient(transport=transport) as http:
        api = _api(http, api_endpoint="https://fuzzysearch.example.test/api/")
        await api.lookup_filename("x")

    assert api.api_endpoint == "https://fuzzysearch.example.test/api"
    assert str(seen[0].url).startswith("https://fuzzysearch.example.test/api/file?")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_rejected_key(status: int) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(status, json={"error": "bad key"}))
    async with httpx.AsyncClient(transport=transport) as http:
        with pytest.raises(UnauthorizedError) as excinfo:
            await _api(http).lookup_filename("x")
    assert excinfo.value.http_status == status


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 429, 500, 502])
async def test_http_errors(status: int) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(status, text="nope"))
    async with httpx.AsyncClient(transport=transport) as http:
        with pytest.raises(ApiError) as excinfo:
            await _api(http).lookup_url("https://example.com/a.png")
    assert excinfo.value.http_status == status
    assert excinfo.value.code == "api_error"


@pytest.mark.asyncio
async def test_malformed_body_is_a_decode_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[{"site_id": 1, "site": "Inkbunny"}]))
    async with httpx.AsyncClient(transport=transport) as http:
        with pytest.raises(DecodeError):
            await _api(http).lookup_filename("x")


@pytest.mark.asyncio
async def test_connection_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(ServiceUnavailableError) as excinfo:
            await _api(http).lookup_filename("x")
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_transport_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(ServiceUnavailableError):
            await _api(http).lookup_filename("x")


@pytest.mark.asyncio
async def test_overall_timeout() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return httpx.Response(200, json=[])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(ServiceUnavailableError):
            await _api(http, timeout_seconds=0.05).lookup_filename("x")


def test_api_key_required() -> None:
    with pytest.raises(RequestInvalidError):
        FuzzySearchClient(http_client=httpx.AsyncClient(), api_key="")
