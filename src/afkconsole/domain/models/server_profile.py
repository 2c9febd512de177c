"""Domain model for the single target game server."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

DEFAULT_PROTOCOL_VERSION = "1.20.1"
DEFAULT_SERVER_PORT = 25565


@dataclass(frozen=True)
class ServerProfile:
    """Connection parameters shared by every bot session."""

    host: str = "localhost"
    port: int = DEFAULT_SERVER_PORT
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    login_delay_seconds: float = 5

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready representation of the profile."""

        return {
            "serverIP": self.host,
            "serverPort": self.port,
            "version": self.protocol_version,
            "loginDelay": self.login_delay_seconds,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ServerProfile":
        """Create a server profile, falling back to defaults for missing keys."""

        if not isinstance(data, Mapping):
            raise ValueError("Server info must be a mapping.")

        defaults = cls()
        host = data.get("serverIP") or defaults.host
        if not isinstance(host, str):
            raise ValueError("Server address must be a string.")

        try:
            port = int(data.get("serverPort") or defaults.port)
        except (TypeError, ValueError):
            raise ValueError("Server port must be an integer.") from None
        if not 0 < port < 65536:
            raise ValueError("Server port must be between 1 and 65535.")

        version = data.get("version") or defaults.protocol_version

        raw_delay = data.get("loginDelay")
        try:
            login_delay = float(raw_delay) if raw_delay is not None else defaults.login_delay_seconds
        except (TypeError, ValueError):
            raise ValueError("Login delay must be a number of seconds.") from None
        if login_delay < 0:
            raise ValueError("Login delay cannot be negative.")

        return cls(
            host=host.strip(),
            port=port,
            protocol_version=str(version),
            login_delay_seconds=login_delay,
        )
