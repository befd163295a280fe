from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO

import imagehash
import numpy as np
from PIL import Image, UnidentifiedImageError

from fuzzysearch.core.config import Settings
from fuzzysearch.core.errors import InvalidImageError
from fuzzysearch.core.image_validation import parse_and_validate_image_bytes
from fuzzysearch.domain.ports.hasher import ImageHasher

logger = logging.getLogger(__name__)

# Rec. 709 luma weights, the same ones the service applies before hashing.
_LUMA_MATRIX = (0.2126, 0.7152, 0.0722, 0.0)


@dataclass(frozen=True)
class HasherConfig:
    width: int = 8
    height: int = 8
    dct: bool = True
    resize_filter: Image.Resampling = Image.Resampling.LANCZOS
    # Input limits are off unless set; an empty format tuple accepts anything Pillow decodes.
    allowed_formats: tuple[str, ...] = ()
    max_bytes: int | None = None
    max_pixels: int | None = None
    max_width: int | None = None
    max_height: int | None = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("hash dimensions must be positive")
        if (self.width * self.height) % 8 != 0:
            raise ValueError("hash size must be a whole number of bytes")

    @classmethod
    def from_settings(cls, settings: Settings) -> "HasherConfig":
        return cls(
            allowed_formats=tuple(settings.allowed_image_formats),
            max_bytes=settings.max_image_bytes,
            max_pixels=settings.max_image_pixels,
            max_width=settings.max_image_width,
            max_height=settings.max_image_height,
        )


def _dct_matrix(n: int) -> np.ndarray:
    k = np.arange(n, dtype=np.float64).reshape(-1, 1)
    i = np.arange(n, dtype=np.float64).reshape(1, -1)
    return np.cos(np.pi / n * (i + 0.5) * k)


def _pack_bits(bits: np.ndarray) -> int:
    # Bits fill each byte starting from the least significant one; bytes are big-endian.
    packed = np.packbits(np.asarray(bits, dtype=bool).reshape(-1), bitorder="little")
    return int.from_bytes(packed.tobytes(), "big", signed=True)


def hash_to_int(value: imagehash.ImageHash) -> int:
    return _pack_bits(value.hash)


def int_to_hash(value: int, *, width: int = 8, height: int = 8) -> imagehash.ImageHash:
    n_bytes = (width * height) // 8
    try:
        raw = int(value).to_bytes(n_bytes, "big", signed=True)
    except OverflowError as exc:
        raise ValueError(f"hash {value} does not fit in {n_bytes * 8} bits") from exc
    bits = np.unpackbits(np.frombuffer(raw, dtype=np.uint8), bitorder="little").astype(bool)
    return imagehash.ImageHash(bits.reshape(height, width))


def hamming_distance(a: int, b: int) -> int:
    return int(int_to_hash(a) - int_to_hash(b))


class GradientHasher(ImageHasher):
    """Gradient hash over DCT coefficients, matching the hashes the service stores."""

    def __init__(self, config: HasherConfig | None = None) -> None:
        self._cfg = config or HasherConfig()
        # The gradient compares neighbours, so one extra column is sampled.
        self._cols = self._cfg.width + 1
        self._rows = self._cfg.height
        if self._cfg.dct:
            self._dct_rows = _dct_matrix(self._rows * 2)
            self._dct_cols = _dct_matrix(self._cols * 2)

    @property
    def config(self) -> HasherConfig:
        return self._cfg

    def _hash_values(self, img: Image.Image) -> np.ndarray:
        gray = img.convert("RGB").convert("L", _LUMA_MATRIX)
        if not self._cfg.dct:
            resized = gray.resize((self._cols, self._rows), self._cfg.resize_filter)
            return np.asarray(resized, dtype=np.float64)

        resized = gray.resize((self._cols * 2, self._rows * 2), self._cfg.resize_filter)
        pixels = np.asarray(resized, dtype=np.float64)
        coeffs = self._dct_rows @ pixels @ self._dct_cols.T
        return coeffs[: self._rows, : self._cols]

    def hash_image(self, img: Image.Image) -> imagehash.ImageHash:
        values = self._hash_values(img)
        return imagehash.ImageHash(values[:, :-1] < values[:, 1:])

    def hash_bytes(self, data: bytes) -> int:
        validated = parse_and_validate_image_bytes(
            data=data,
            allowed_formats=self._cfg.allowed_formats,
            max_bytes=self._cfg.max_bytes,
            max_pixels=self._cfg.max_pixels,
            max_width=self._cfg.max_width,
            max_height=self._cfg.max_height,
        )
        try:
            with Image.open(BytesIO(validated.content)) as img:
                img.load()
                value = hash_to_int(self.hash_image(img))
        except (UnidentifiedImageError, OSError) as exc:
            raise InvalidImageError("failed image load") from exc

        logger.debug(
            "local_hash_computed",
            extra={"image_format": validated.format, "width": validated.width, "height": validated.height},
        )
        return value


@lru_cache(maxsize=1)
def get_hasher() -> GradientHasher:
    """A hasher configured with the same parameters the service uses."""
    return GradientHasher()


def hash_bytes(data: bytes) -> int:
    return get_hasher().hash_bytes(data)


async def hash_bytes_async(data: bytes, *, hasher: ImageHasher | None = None) -> int:
    return await asyncio.to_thread((hasher or get_hasher()).hash_bytes, data)
