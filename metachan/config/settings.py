"""Metachan Configuration Settings."""

from __future__ import annotations

import os
from enum import StrEnum
from functools import cached_property, lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from metachan.utils.logging import _get_logger

__all__ = [
    "LogLevel",
    "MetachanConfig",
    "TMDBConfig",
    "TVDBConfig",
    "get_config",
]

_log = _get_logger(__name__)


def get_data_path() -> Path:
    """Return the data directory resolved from `MC_DATA_PATH`."""
    return Path(os.getenv("MC_DATA_PATH", "./data")).resolve()


def find_yaml_config_file() -> Path:
    """Find the YAML configuration file in the data path.

    Returns:
        Path: The path to an existing YAML configuration file or the default location.
    """
    data_path = get_data_path()

    for ext in ("yaml", "yml"):
        yaml_file = data_path / f"config.{ext}"
        if yaml_file.exists():
            _log.debug(f"Using YAML config file: {yaml_file}")
            return yaml_file
    return data_path / "config.yaml"


class LogLevel(StrEnum):
    """Enumeration of available logging levels.

    Note: SUCCESS is a custom level used by this application.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def _missing_(cls, value: object) -> LogLevel | None:
        """Allow case-insensitive lookups."""
        if isinstance(value, str):
            for member in cls:
                if member.value == value.upper():
                    return member
        return None


class TVDBConfig(BaseModel):
    """Credentials for TheTVDB v4 API."""

    api_key: SecretStr | None = Field(default=None, description="TheTVDB API key")
    pin: SecretStr | None = Field(
        default=None, description="Subscriber PIN for user-supported keys"
    )

    @property
    def enabled(self) -> bool:
        """Whether TheTVDB enrichment can be used."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class TMDBConfig(BaseModel):
    """Credentials for the TMDB v3 API."""

    read_access_token: SecretStr | None = Field(
        default=None, description="TMDB API read access token (v4 auth)"
    )

    @property
    def enabled(self) -> bool:
        """Whether TMDB enrichment can be used."""
        return self.read_access_token is not None and bool(
            self.read_access_token.get_secret_value()
        )


class MetachanConfig(BaseSettings):
    """Application configuration.

    Values are sourced from init kwargs, `MC_` environment variables and the YAML
    file in the data path, in that order of precedence.
    """

    log_level: LogLevel = Field(
        default=LogLevel.INFO, description="Logging level for the application"
    )
    mappings_url: str = Field(
        default="https://raw.githubusercontent.com/Fribb/anime-lists/master/anime-list-full.json",
        description="URL of the cross-provider ID list used by the mapping sync",
    )
    tvdb: TVDBConfig = Field(default_factory=TVDBConfig)
    tmdb: TMDBConfig = Field(default_factory=TMDBConfig)

    @cached_property
    def data_path(self) -> Path:
        """Get the data path for Metachan.

        Returns:
            Path: The data path resolved from the environment or default location.
        """
        return get_data_path()

    def __str__(self) -> str:
        """Creates a human-readable representation of the configuration."""
        return (
            f"Metachan Config: DATA_PATH: {self.data_path}, "
            f"LOG_LEVEL: {self.log_level}, "
            f"TVDB: {'enabled' if self.tvdb.enabled else 'disabled'}, "
            f"TMDB: {'enabled' if self.tmdb.enabled else 'disabled'}"
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of configuration sources."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=find_yaml_config_file()),
        )

    model_config = SettingsConfigDict(
        env_prefix="MC_", env_nested_delimiter="__", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_config() -> MetachanConfig:
    """Get the singleton instance of MetachanConfig.

    Returns:
        MetachanConfig: The singleton configuration instance.
    """
    return MetachanConfig()
