from __future__ import annotations

from typing import Protocol


class ImageHasher(Protocol):
    def hash_bytes(self, data: bytes) -> int:
        ...
