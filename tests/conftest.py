from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from fuzzysearch.core.config import ClientSettings


@pytest.fixture()
def settings() -> ClientSettings:
    return ClientSettings(FUZZYSEARCH_API_KEY="test-key", LOG_LEVEL="INFO", LOG_JSON=False, _env_file=None)


@pytest.fixture()
def make_file() -> Callable[..., dict[str, Any]]:
    def _make(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "site_id": 12345,
            "url": "https://d.furaffinity.net/art/artist/1600000000/1600000000.artist_image.png",
            "filename": "1600000000.artist_image.png",
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture()
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    httpx_level = logging.getLogger("httpx").level
    try:
        yield
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)
        logging.getLogger("httpx").setLevel(httpx_level)
