from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

import httpx

from fuzzysearch.core.config import DEFAULT_API_ENDPOINT
from fuzzysearch.core.errors import ApiError, RequestInvalidError, ServiceUnavailableError, UnauthorizedError
from fuzzysearch.core.tracing import b3_headers
from fuzzysearch.domain.entities import MatchType
from fuzzysearch.domain.models import File, Matches, decode_files, decode_matches
from fuzzysearch.domain.ports.search_api import ReverseImageSearch

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Api-Key"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class FuzzySearchClient(ReverseImageSearch):
    """Typed access to the FuzzySearch reverse image search API."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        api_key: str,
        api_endpoint: str = DEFAULT_API_ENDPOINT,
        timeout_seconds: float = 20.0,
        trace_propagation: bool = True,
    ) -> None:
        if not api_key:
            raise RequestInvalidError("api key is required")
        self._client = http_client
        self._api_key = api_key
        self._endpoint = api_endpoint.rstrip("/")
        self._timeout = float(timeout_seconds)
        self._trace_propagation = bool(trace_propagation)

    @property
    def api_endpoint(self) -> str:
        return self._endpoint

    async def lookup_url(self, url: str) -> list[File]:
        """Look up an image by the URL it is hosted at. URLs should be https."""
        if not url.strip():
            raise RequestInvalidError("url must not be empty")
        body = await self._request("GET", "/file", params={"url": url})
        return decode_files(body)

    async def lookup_filename(self, filename: str) -> list[File]:
        """Look up an image by its original filename on FurAffinity."""
        if not filename.strip():
            raise RequestInvalidError("filename must not be empty")
        body = await self._request("GET", "/file", params={"name": filename})
        return decode_files(body)

    async def lookup_hashes(self, hashes: Sequence[int]) -> list[File]:
        if not hashes:
            raise RequestInvalidError("at least one hash is required")
        for value in hashes:
            if isinstance(value, bool) or not isinstance(value, int) or not (_INT64_MIN <= value <= _INT64_MAX):
                raise RequestInvalidError(f"hash is not a 64-bit integer: {value!r}")
        body = await self._request("GET", "/hashes", params={"hashes": ",".join(str(h) for h in hashes)})
        return decode_files(body)

    async def image_search(self, data: bytes, match_type: MatchType = MatchType.CLOSE) -> Matches:
        """Reverse search an image.

        Exact matching is faster but may leave out results.
        """
        if not data:
            raise RequestInvalidError("image data must not be empty")
        body = await self._request(
            "POST",
            "/image",
            params={"type": MatchType(match_type).value},
            files={"image": ("image", bytes(data), "application/octet-stream")},
        )
        return decode_matches(body)

    def _headers(self) -> dict[str, str]:
        headers = {API_KEY_HEADER: self._api_key}
        if self._trace_propagation:
            headers.update(b3_headers())
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str],
        files: dict[str, Any] | None = None,
    ) -> bytes:
        url = f"{self._endpoint}{path}"
        logger.debug("fuzzysearch_request", extra={"http_method": method, "http_path": path})
        start = time.monotonic()
        try:
            resp = await asyncio.wait_for(
                self._client.request(method, url, params=params, files=files, headers=self._headers()),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("fuzzysearch_error", extra={"http_method": method, "http_path": path, "reason": "timeout"})
            raise ServiceUnavailableError(f"{method} {path} timed out") from exc
        except httpx.RequestError as exc:
            logger.warning(
                "fuzzysearch_error",
                extra={"http_method": method, "http_path": path, "reason": exc.__class__.__name__},
            )
            raise ServiceUnavailableError(f"{method} {path} failed: {exc.__class__.__name__}") from exc

        duration_ms = int((time.monotonic() - start) * 1000)
        status = resp.status_code
        logger.info(
            "fuzzysearch_response",
            extra={"http_method": method, "http_path": path, "http_status": status, "duration_ms": duration_ms},
        )

        if status in (401, 403):
            raise UnauthorizedError(status, f"{method} {path} was rejected, check the API key")
        if status >= 400:
            raise ApiError(status, f"{method} {path} returned HTTP {status}")
        return resp.content
