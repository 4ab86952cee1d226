"""Configuration management for fragmentscan.

Loads settings from a YAML configuration file with environment variable
overrides (``FRAGMENTSCAN_`` prefix, ``__`` between nested sections).
Invalid values such as a negative quota are rejected here, when the
configuration is loaded, rather than on the first scan.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, NonNegativeInt, field_validator
from pydantic_settings import BaseSettings

from fragmentscan.domain.models import ScanKind

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/fragmentscan.yaml")


class ScannerConfig(BaseModel):
    quiescence_window: float = Field(
        default=0.1, gt=0, description="Seconds of silence that end a burst"
    )
    terminator_keys: list[str] = Field(default_factory=lambda: ["Enter"])


class QuotaConfig(BaseModel):
    """Daily scan limits per agent.

    Scan kinds are counted against named counters. ``groups`` maps a kind
    onto a shared counter (both RFID tag kinds draw from ``rfid`` by
    default); kinds without a group count under their own name.
    """

    limits: dict[str, NonNegativeInt] = Field(
        default_factory=lambda: {"rfid": 3, "barcode": 10},
        description="Daily limit per counter name",
    )
    groups: dict[ScanKind, str] = Field(
        default_factory=lambda: {
            ScanKind.FRAGMENT_TAG: "rfid",
            ScanKind.GENERIC_RFID: "rfid",
        },
    )
    default_limit: NonNegativeInt | None = Field(
        default=None, description="Limit for counters not in limits (None = unlimited)"
    )
    timezone: str | None = Field(
        default=None, description="IANA zone for the day boundary (None = local time)"
    )

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"Unknown timezone: {value}") from e
        return value

    def counter_for(self, kind: ScanKind) -> str:
        return self.groups.get(kind, kind.value)

    def limit_for(self, kind: ScanKind) -> int | None:
        return self.limits.get(self.counter_for(kind), self.default_limit)


class StorageConfig(BaseModel):
    backend: Literal["memory", "sqlite"] = Field(default="memory")
    path: str = Field(default="data/fragmentscan.db")


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1, le=65535)
    max_recent_results: int = Field(default=50, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for fragmentscan.

    Loads from YAML file and supports environment variable overrides.
    """

    model_config = {
        "env_prefix": "FRAGMENTSCAN_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: init values (YAML) > env vars > .env file > defaults

    Raises:
        pydantic.ValidationError: If any section holds an invalid value.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    return Settings(**yaml_data)
