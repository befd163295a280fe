from __future__ import annotations

from collections.abc import Iterable
from io import BytesIO

from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError

from fuzzysearch.core.errors import (
    ImageDimensionsExceededError,
    ImageTooLargeError,
    InvalidImageError,
    UnsupportedImageTypeError,
)
from fuzzysearch.domain.entities import ValidatedImage


def check_image_size(*, data: bytes, max_bytes: int | None = None) -> None:
    if not data:
        raise InvalidImageError("empty image")
    if max_bytes is None:
        return
    if max_bytes <= 0:
        raise ImageTooLargeError("invalid max_bytes configuration")
    if len(data) > max_bytes:
        raise ImageTooLargeError(f"image is {len(data)} bytes, limit is {max_bytes}")


def parse_and_validate_image_bytes(
    *,
    data: bytes,
    allowed_formats: Iterable[str] | None = None,
    max_bytes: int | None = None,
    max_pixels: int | None = None,
    max_width: int | None = None,
    max_height: int | None = None,
) -> ValidatedImage:
    """Check that ``data`` is an image Pillow can decode.

    Every limit is opt-in: ``None`` (or an empty format list) accepts any
    format and size. Pillow's decompression bomb guard always applies.
    """
    check_image_size(data=data, max_bytes=max_bytes)

    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except DecompressionBombError as exc:
        raise ImageDimensionsExceededError("decompression bomb detected") from exc
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImageError("failed image verify") from exc

    try:
        with Image.open(BytesIO(data)) as img2:
            width, height = img2.size
            fmt = (img2.format or "").upper()
    except DecompressionBombError as exc:
        raise ImageDimensionsExceededError("decompression bomb detected") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImageError("failed image open") from exc

    if width <= 0 or height <= 0:
        raise InvalidImageError("invalid image dimensions")

    if max_pixels is not None and width * height > max_pixels:
        raise ImageDimensionsExceededError(f"image has {width * height} pixels, limit is {max_pixels}")
    if (max_width is not None and width > max_width) or (max_height is not None and height > max_height):
        raise ImageDimensionsExceededError(f"image is {width}x{height}, exceeds configured limits")

    allowed = {f.strip().upper() for f in (allowed_formats or ()) if f.strip()}
    if allowed and fmt not in allowed:
        raise UnsupportedImageTypeError(f"image format not allowed: {fmt!r}")

    return ValidatedImage(
        content=data,
        format=fmt,
        width=width,
        height=height,
    )
