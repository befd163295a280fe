from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MatchType(str, Enum):
    """How the service should match an uploaded image."""

    # Exact items first, expanded search only when nothing is found.
    CLOSE = "close"
    # Exact items only.
    EXACT = "exact"
    # Always search the expanded set.
    FORCE = "force"


@dataclass(frozen=True)
class ValidatedImage:
    content: bytes
    format: str
    width: int
    height: int
