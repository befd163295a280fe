from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated, Any

from pydantic import AnyUrl, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from fuzzysearch.version import __version__

DEFAULT_API_ENDPOINT = "https://api.fuzzysearch.net"


def _parse_csv_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        if raw.startswith("[") and raw.endswith("]"):
            try:
                import json  # local import to avoid unused in production paths

                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(v).strip() for v in parsed if str(v).strip()]
            except ValueError:
                pass
        parts = [p.strip() for p in raw.split(",")]
        return [p for p in parts if p]
    return [str(value).strip()]


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_key: SecretStr = Field(..., validation_alias="FUZZYSEARCH_API_KEY")
    api_endpoint: AnyUrl = Field(default=DEFAULT_API_ENDPOINT, validation_alias="FUZZYSEARCH_API_ENDPOINT")
    timeout_seconds: float = Field(default=20.0, validation_alias="FUZZYSEARCH_TIMEOUT_SECONDS")
    max_connections: int = Field(default=100, validation_alias="FUZZYSEARCH_MAX_CONNECTIONS")
    max_keepalive_connections: int = Field(default=20, validation_alias="FUZZYSEARCH_MAX_KEEPALIVE_CONNECTIONS")
    user_agent: str = Field(default=f"fuzzysearch-python/{__version__}", validation_alias="FUZZYSEARCH_USER_AGENT")
    trace_propagation: bool = Field(default=True, validation_alias="FUZZYSEARCH_TRACE_PROPAGATION")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON")

    # Local hashing limits, unset means unlimited.
    max_image_bytes: int | None = Field(default=None, validation_alias="FUZZYSEARCH_MAX_IMAGE_BYTES")
    max_image_pixels: int | None = Field(default=None, validation_alias="FUZZYSEARCH_MAX_IMAGE_PIXELS")
    max_image_width: int | None = Field(default=None, validation_alias="FUZZYSEARCH_MAX_IMAGE_WIDTH")
    max_image_height: int | None = Field(default=None, validation_alias="FUZZYSEARCH_MAX_IMAGE_HEIGHT")
    allowed_image_formats: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        validation_alias="FUZZYSEARCH_ALLOWED_IMAGE_FORMATS",
    )

    @field_validator("allowed_image_formats", mode="before")
    @classmethod
    def _validate_csv_lists(cls, v: Any) -> list[str]:
        return [fmt.upper() for fmt in _parse_csv_list(v)]

    @model_validator(mode="after")
    def _validate_ranges(self) -> "ClientSettings":
        if not self.api_key.get_secret_value().strip():
            raise ValueError("FUZZYSEARCH_API_KEY must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("FUZZYSEARCH_TIMEOUT_SECONDS must be positive")
        if self.max_connections <= 0 or self.max_keepalive_connections < 0:
            raise ValueError("connection pool limits must be positive")
        for name, limit in (
            ("FUZZYSEARCH_MAX_IMAGE_BYTES", self.max_image_bytes),
            ("FUZZYSEARCH_MAX_IMAGE_PIXELS", self.max_image_pixels),
            ("FUZZYSEARCH_MAX_IMAGE_WIDTH", self.max_image_width),
            ("FUZZYSEARCH_MAX_IMAGE_HEIGHT", self.max_image_height),
        ):
            if limit is not None and limit <= 0:
                raise ValueError(f"{name} must be positive")
        return self

    def api_key_plain(self) -> str:
        return self.api_key.get_secret_value()

    def api_endpoint_plain(self) -> str:
        return str(self.api_endpoint).rstrip("/")


Settings = ClientSettings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return ClientSettings()
