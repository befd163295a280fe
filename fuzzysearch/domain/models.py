from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, Literal, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    Strict,
    StrictStr,
    TypeAdapter,
    ValidationError,
    model_serializer,
    model_validator,
)

from fuzzysearch.core.errors import ArtistMissingError, DecodeError, SiteInfoMissingError

Int32 = Annotated[int, Strict(), Field(ge=-(2**31), le=2**31 - 1)]
Int64 = Annotated[int, Strict(), Field(ge=-(2**63), le=2**63 - 1)]
UInt64 = Annotated[int, Strict(), Field(ge=0, le=2**64 - 1)]


class Site(str, Enum):
    FURAFFINITY = "FurAffinity"
    E621 = "e621"
    TWITTER = "Twitter"
    WEASYL = "Weasyl"


class Rating(str, Enum):
    GENERAL = "general"
    MATURE = "mature"
    ADULT = "adult"


class FurAffinityInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    site: Literal["FurAffinity"] = "FurAffinity"
    # Id of the file as seen in the image URL, not the submission id.
    file_id: Int32


class E621Info(BaseModel):
    model_config = ConfigDict(frozen=True)

    site: Literal["e621"] = "e621"
    sources: tuple[StrictStr, ...] | None = None


class TwitterInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    site: Literal["Twitter"] = "Twitter"


class WeasylInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    site: Literal["Weasyl"] = "Weasyl"


SiteInfo = Annotated[
    Union[FurAffinityInfo, E621Info, TwitterInfo, WeasylInfo],
    Field(discriminator="site"),
]

_PAYLOAD_SITES: frozenset[str] = frozenset({Site.FURAFFINITY.value, Site.E621.value})

_SITE_NAMES: dict[Site, str] = {
    Site.FURAFFINITY: "FurAffinity",
    Site.E621: "e621",
    Site.TWITTER: "Twitter",
    Site.WEASYL: "Weasyl",
}

_SOURCE_URLS: dict[Site, str] = {
    Site.FURAFFINITY: "https://www.furaffinity.net/view/{site_id}/",
    Site.E621: "https://e621.net/posts/{site_id}",
    Site.WEASYL: "https://www.weasyl.com/view/{site_id}/",
}


class File(BaseModel):
    """A submission matching a lookup.

    On the wire the site discriminator and its payload sit next to the other
    fields as ``site`` and ``site_info``; here they are folded into one
    ``site_info`` variant.
    """

    model_config = ConfigDict(frozen=True)

    site_id: Int64
    url: StrictStr
    filename: StrictStr
    artists: tuple[StrictStr, ...] | None = None
    rating: Rating | None = None
    # Only returned by hash and image endpoints.
    hash: Int64 | None = None
    # Only returned by distance-aware endpoints.
    distance: UInt64 | None = None
    site_info: SiteInfo | None = None
    # The queried hash that produced this result, multi-hash lookups only.
    searched_hash: Int64 | None = None

    @model_validator(mode="before")
    @classmethod
    def _nest_site_info(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or data.get("site") is None:
            return data

        out = dict(data)
        site = out.pop("site")
        payload = out.get("site_info")
        if payload is None:
            payload = {}
        elif isinstance(payload, BaseModel):
            payload_site = getattr(payload, "site", None)
            if payload_site != site:
                raise ValueError(f"site {site!r} does not match site_info for {payload_site!r}")
            payload = payload.model_dump()
        if not isinstance(payload, Mapping):
            raise ValueError("site_info must be an object")
        out["site_info"] = {**payload, "site": site}
        return out

    @model_serializer(mode="wrap")
    def _flatten_site_info(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        """Write ``site`` and ``site_info`` back as sibling keys, dropping absent fields.

        The output is a plain dict, so ``model_json_schema(mode="serialization")``
        only reports an object; the validation schema describes the fields.
        """
        data = handler(self)
        out: dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                continue
            if key != "site_info":
                out[key] = value
                continue
            payload = {k: v for k, v in dict(value).items() if v is not None}
            site = payload.pop("site")
            out["site"] = site
            if site in _PAYLOAD_SITES:
                out["site_info"] = payload
        return out

    @property
    def site(self) -> Site | None:
        if self.site_info is None:
            return None
        return Site(self.site_info.site)

    def _require_site(self) -> Site:
        site = self.site
        if site is None:
            raise SiteInfoMissingError(f"search result {self.site_id} was missing site info")
        return site

    def site_name(self) -> str:
        """Human readable name of the site this result came from."""
        return _SITE_NAMES[self._require_site()]

    def source_url(self) -> str:
        """Link to the page the image was posted on."""
        site = self._require_site()
        if site is Site.TWITTER:
            if not self.artists:
                raise ArtistMissingError(f"twitter result {self.site_id} has no artists")
            return f"https://twitter.com/{self.artists[0]}/status/{self.site_id}"
        return _SOURCE_URLS[site].format(site_id=self.site_id)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Matches(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Hash of the submitted image.
    hash: Int64
    matches: tuple[File, ...]

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


_T = TypeVar("_T")

_FILE_ADAPTER: TypeAdapter[File] = TypeAdapter(File)
_FILE_LIST_ADAPTER: TypeAdapter[list[File]] = TypeAdapter(list[File])
_MATCHES_ADAPTER: TypeAdapter[Matches] = TypeAdapter(Matches)


def _decode(adapter: TypeAdapter[_T], payload: Any, what: str) -> _T:
    try:
        if isinstance(payload, (str, bytes, bytearray)):
            return adapter.validate_json(payload)
        return adapter.validate_python(payload)
    except ValidationError as exc:
        raise DecodeError(
            f"invalid {what} payload: {exc.error_count()} error(s)",
            errors=exc.errors(include_url=False, include_context=False),
        ) from exc


def decode_file(payload: Any) -> File:
    return _decode(_FILE_ADAPTER, payload, "file")


def decode_files(payload: Any) -> list[File]:
    return _decode(_FILE_LIST_ADAPTER, payload, "file list")


def decode_matches(payload: Any) -> Matches:
    return _decode(_MATCHES_ADAPTER, payload, "matches")
