from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from fuzzysearch.core.config import Settings, get_settings
from fuzzysearch.infrastructure.http.fuzzysearch_client import FuzzySearchClient

logger = logging.getLogger(__name__)


def create_http_client(settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.api_endpoint_plain(),
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"Accept": "application/json", "User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_keepalive_connections,
        ),
        transport=transport,
    )


def create_client(settings: Settings | None = None, *, http_client: httpx.AsyncClient | None = None) -> FuzzySearchClient:
    settings = settings or get_settings()
    return FuzzySearchClient(
        http_client=http_client or create_http_client(settings),
        api_key=settings.api_key_plain(),
        api_endpoint=settings.api_endpoint_plain(),
        timeout_seconds=settings.timeout_seconds,
        trace_propagation=settings.trace_propagation,
    )


@asynccontextmanager
async def open_client(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncGenerator[FuzzySearchClient, None]:
    """Yield a client backed by its own connection pool, closed on exit."""
    settings = settings or get_settings()
    http_client = create_http_client(settings, transport=transport)
    logger.debug("fuzzysearch_client_opened", extra={"api_endpoint": settings.api_endpoint_plain()})
    try:
        yield create_client(settings, http_client=http_client)
    finally:
        await http_client.aclose()
        logger.debug("fuzzysearch_client_closed")
