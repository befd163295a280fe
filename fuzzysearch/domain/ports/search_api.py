from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from fuzzysearch.domain.entities import MatchType
from fuzzysearch.domain.models import File, Matches


class ReverseImageSearch(Protocol):
    async def lookup_url(self, url: str) -> list[File]:
        ...

    async def lookup_filename(self, filename: str) -> list[File]:
        ...

    async def lookup_hashes(self, hashes: Sequence[int]) -> list[File]:
        ...

    async def image_search(self, data: bytes, match_type: MatchType = MatchType.CLOSE) -> Matches:
        ...
