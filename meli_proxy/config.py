"""meli-proxy configuration.

Every value comes from the environment and falls back to a hard-coded default
when the variable is absent or malformed, so a bad deploy variable degrades to
defaults instead of crashing startup. A local .env file is loaded into the
environment by meli_proxy.serve, outside production only.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 500
DEFAULT_DATE_WINDOW_HOURS = 72.0
DEFAULT_UNSHIPPED_STATUSES = ["ready_to_ship", "to_be_picked_up"]
DEFAULT_TZ = "America/Santiago"
DEFAULT_PORT = 3000


class Settings(BaseSettings):
    """Environment-driven settings for the proxy."""

    webhook_buffer_size: int = DEFAULT_BUFFER_SIZE
    date_window_hours: float = DEFAULT_DATE_WINDOW_HOURS
    unshipped_statuses: Annotated[list[str], NoDecode] = DEFAULT_UNSHIPPED_STATUSES
    tz: str = DEFAULT_TZ
    log_level: str = "INFO"
    port: int = DEFAULT_PORT
    env: str = "development"

    meli_api_base_url: str = "https://api.mercadolibre.com"
    cors_allowed_origins: Annotated[list[str], NoDecode] = ["*"]

    model_config = {"extra": "ignore"}

    @field_validator("webhook_buffer_size", mode="before")
    @classmethod
    def _buffer_size(cls, v: Any) -> int:
        return _positive_int(v, DEFAULT_BUFFER_SIZE, "WEBHOOK_BUFFER_SIZE")

    @field_validator("port", mode="before")
    @classmethod
    def _port(cls, v: Any) -> int:
        return _positive_int(v, DEFAULT_PORT, "PORT")

    @field_validator("date_window_hours", mode="before")
    @classmethod
    def _window_hours(cls, v: Any) -> float:
        try:
            hours = float(v)
        except (TypeError, ValueError):
            logger.warning("Invalid DATE_WINDOW_HOURS %r, using %s", v, DEFAULT_DATE_WINDOW_HOURS)
            return DEFAULT_DATE_WINDOW_HOURS
        if hours != hours or hours <= 0 or hours == float("inf"):
            return DEFAULT_DATE_WINDOW_HOURS
        return hours

    @field_validator("unshipped_statuses", mode="before")
    @classmethod
    def _statuses(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                logger.warning("UNSHIPPED_STATUSES is not valid JSON, using defaults")
                return list(DEFAULT_UNSHIPPED_STATUSES)
        if not isinstance(v, list) or not v:
            return list(DEFAULT_UNSHIPPED_STATUSES)
        return [str(s) for s in v]

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _origins(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()] or ["*"]
        return v

    @field_validator("tz", mode="before")
    @classmethod
    def _tz(cls, v: Any) -> str:
        if not v or not isinstance(v, str):
            return DEFAULT_TZ
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using %s", v, DEFAULT_TZ)
            return DEFAULT_TZ
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _log_level(cls, v: Any) -> str:
        level = str(v or "").upper()
        return level if level in logging.getLevelNamesMapping() else "INFO"

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.tz)


def _positive_int(value: Any, default: int, name: str) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s %r, using %d", name, value, default)
        return default
    return n if n > 0 else default


settings = Settings()


def get_settings() -> Settings:
    """Settings accessor for FastAPI dependency injection."""
    return settings
