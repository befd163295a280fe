from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FuzzySearchError(Exception):
    code: str
    http_status: int | None = None
    log_detail: str | None = None
    extra: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.log_detail or self.code


class DecodeError(FuzzySearchError):
    def __init__(self, log_detail: str | None = None, *, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(code="decode_failed", log_detail=log_detail, extra={"errors": errors or []})


class PreconditionError(FuzzySearchError):
    """A derived accessor was called on a result missing the data it needs."""


class SiteInfoMissingError(PreconditionError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="site_info_missing", log_detail=log_detail or "search result was missing site info")


class ArtistMissingError(PreconditionError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="artist_missing", log_detail=log_detail or "search result was missing artists")


class RequestInvalidError(FuzzySearchError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="request_invalid", log_detail=log_detail)


class UnauthorizedError(FuzzySearchError):
    def __init__(self, http_status: int, log_detail: str | None = None) -> None:
        super().__init__(code="unauthorized", http_status=http_status, log_detail=log_detail)


class ApiError(FuzzySearchError):
    def __init__(self, http_status: int, log_detail: str | None = None) -> None:
        super().__init__(code="api_error", http_status=http_status, log_detail=log_detail)


class ServiceUnavailableError(FuzzySearchError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="service_unavailable", log_detail=log_detail)


class InvalidImageError(FuzzySearchError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="invalid_image", log_detail=log_detail)


class ImageTooLargeError(FuzzySearchError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="image_too_large", log_detail=log_detail)


class UnsupportedImageTypeError(FuzzySearchError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="unsupported_image_type", log_detail=log_detail)


class ImageDimensionsExceededError(FuzzySearchError):
    def __init__(self, log_detail: str | None = None) -> None:
        super().__init__(code="image_dimensions_exceeded", log_detail=log_detail)
