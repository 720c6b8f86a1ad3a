"""Centralized configuration: Pydantic BaseSettings with TOML + env sources.

Host-wide settings live in ``/etc/extra-container/config.toml`` (or the file
named by ``EXTRA_CONTAINER_CONFIG``). Environment variables override the file
using the ``EXTRA_CONTAINER_`` prefix and ``__`` as the nested delimiter
(e.g. ``EXTRA_CONTAINER_RESTART__MAX_ATTEMPTS=5``).

Priority (highest wins): init args > env vars > config.toml

Usage::

    from extra_container.config import get_settings

    s = get_settings()
    print(s.restart.max_attempts)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

DEFAULT_CONFIG_FILE = Path("/etc/extra-container/config.toml")

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models; reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class PathsConfig(_StrictModel):
    """Overrides for the host layout. ``None`` means auto-detect."""

    service_dir: Path | None = None
    config_dir: Path | None = None
    state_dir: Path | None = None
    gcroots_dir: Path | None = None
    # Present on NixOS hosts; enables install verification in "auto" mode
    nixos_marker: Path = Path("/etc/NIXOS")


class RestartConfig(_StrictModel):
    max_attempts: int = 20
    retry_delay: float = 0.1  # seconds between terminate attempts

    @field_validator("max_attempts")
    @classmethod
    def clamp_max_attempts(cls, v: int) -> int:
        return max(1, v)


class SessionConfig(_StrictModel):
    poll_interval: float = 0.5
    start_timeout: float = 60.0


class InstallConfig(_StrictModel):
    # "auto" verifies only on NixOS hosts, where units come from the store
    verify: Literal["auto", "always", "never"] = "auto"


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


def _config_file() -> Path:
    return Path(os.environ.get("EXTRA_CONTAINER_CONFIG", DEFAULT_CONFIG_FILE))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EXTRA_CONTAINER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    paths: PathsConfig = PathsConfig()
    restart: RestartConfig = RestartConfig()
    session: SessionConfig = SessionConfig()
    install: InstallConfig = InstallConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > config.toml."""
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=_config_file()),
        )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings  # noqa: PLW0603
    _settings = None
