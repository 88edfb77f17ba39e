"""Configuration for the steady ETag middleware.

Rules:
- Primary source: `steady_etag.json` in the working directory (optional).
- Overrides: environment variables prefixed `STEADY_ETAG_`.
- Validation: Pydantic models enforce value constraints.

For the two Cache-Control settings the literal ``none`` (any case) or an
empty string means "do not set Cache-Control".
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from steady_etag.middleware.tagger import DEFAULT_CACHE_CONTROL, DEFAULT_SESSION_KEY, DIGEST_STATUSES

CONFIG_FILE = Path("steady_etag.json")
logger = logging.getLogger(__name__)

_UNSET = object()


def _env(key: str) -> Any:
    return os.environ.get(key, _UNSET)


class TaggerConfig(BaseModel):
    cache_control: Optional[str] = Field(default=DEFAULT_CACHE_CONTROL)
    no_digest_cache_control: Optional[str] = Field(default=None)
    digest_statuses: List[int] = Field(default_factory=lambda: list(DIGEST_STATUSES))
    session_key: str = Field(default=DEFAULT_SESSION_KEY)

    @field_validator("cache_control", "no_digest_cache_control", mode="before")
    @classmethod
    def blank_means_omit(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        if not text or text.lower() == "none":
            return None
        return text

    @field_validator("digest_statuses", mode="before")
    @classmethod
    def split_statuses(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("digest_statuses")
    @classmethod
    def statuses_must_be_http(cls, v: List[int]) -> List[int]:
        for status in v:
            if not 100 <= status <= 599:
                raise ValueError(f"digest_statuses entries must be HTTP status codes, got {status}")
        return v

    @field_validator("session_key")
    @classmethod
    def session_key_must_be_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("session_key must be a non-empty string")
        return v


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                return data
            logger.error("Ignoring JSON config %s: top level is not an object", path)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config(path: Optional[Path] = None) -> TaggerConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) JSON config file
    3) Built-in defaults
    """
    values: dict[str, Any] = dict(_read_json_file(path or CONFIG_FILE))

    overrides = {
        "cache_control": _env("STEADY_ETAG_CACHE_CONTROL"),
        "no_digest_cache_control": _env("STEADY_ETAG_NO_DIGEST_CACHE_CONTROL"),
        "digest_statuses": _env("STEADY_ETAG_DIGEST_STATUSES"),
        "session_key": _env("STEADY_ETAG_SESSION_KEY"),
    }
    values.update({k: v for k, v in overrides.items() if v is not _UNSET})

    try:
        return TaggerConfig(**values)
    except PydanticValidationError as e:
        logger.error("Invalid steady_etag configuration: %s", e)
        raise


__all__ = ["TaggerConfig", "CONFIG_FILE", "load_config"]
