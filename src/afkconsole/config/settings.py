"""Application configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Tuple


@dataclass(frozen=True)
class Settings:
    """Holds configuration values for the console backend."""

    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    info_filename: str = "info.json"
    settings_filename: str = "settings.json"
    bots_filename: str = "bots.json"
    proxies_filename: str = "proxies.txt"
    logs_filename: str = "logs.json"
    version_filename: str = "version.json"
    app_version: str = "1.0.0"
    api_prefix: str = "/api"
    host: str = "0.0.0.0"
    port: int = 1043
    allowed_origins: Tuple[str, ...] = ("*",)
    event_log_limit: int = 1000
    resync_chat_limit: int = 100
    connect_timeout_seconds: float = 45.0
    connect_all_stagger_seconds: float = 3.0

    @property
    def info_path(self) -> Path:
        """Return the full path of the server profile document."""

        return self.data_dir / self.info_filename

    @property
    def settings_path(self) -> Path:
        """Return the full path of the behavior settings document."""

        return self.data_dir / self.settings_filename

    @property
    def bots_path(self) -> Path:
        """Return the full path of the account list document."""

        return self.data_dir / self.bots_filename

    @property
    def proxies_path(self) -> Path:
        """Return the full path of the newline-delimited proxy list."""

        return self.data_dir / self.proxies_filename

    @property
    def logs_path(self) -> Path:
        """Return the full path of the rolling event log."""

        return self.data_dir / self.logs_filename

    @property
    def version_path(self) -> Path:
        """Return the full path of the version marker document."""

        return self.data_dir / self.version_filename


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_settings() -> Settings:
    """Provide application settings, applying environment overrides."""

    settings = Settings()
    overrides: dict[str, object] = {}

    data_dir = os.getenv("DATA_DIR")
    if data_dir:
        overrides["data_dir"] = Path(data_dir).expanduser()

    log_dir = os.getenv("LOG_DIR")
    if log_dir:
        overrides["log_dir"] = Path(log_dir).expanduser()

    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        overrides["log_level"] = log_level.upper()

    host = os.getenv("HOST")
    if host:
        overrides["host"] = host

    port = _int_from_env("PORT", settings.port)
    if port != settings.port:
        overrides["port"] = port

    log_limit = _int_from_env("EVENT_LOG_LIMIT", settings.event_log_limit)
    if log_limit != settings.event_log_limit and log_limit > 0:
        overrides["event_log_limit"] = log_limit

    if not overrides:
        return settings
    return replace(settings, **overrides)
