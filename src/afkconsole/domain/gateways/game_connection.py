"""Port describing the external game-connection library."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from afkconsole.domain.models.events import InventoryItem
from afkconsole.domain.models.proxy import ProxyDescriptor

MOVEMENT_CONTROLS = ("forward", "back", "left", "right", "jump", "sprint", "sneak")


@dataclass(frozen=True)
class ConnectionOptions:
    """Everything needed to open one account's connection."""

    host: str
    port: int
    username: str
    version: str
    auth: str
    physics_enabled: bool = True
    password: str | None = None
    proxy: ProxyDescriptor | None = None
    fake_host: str | None = None
    disable_chat_signing: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Return the option object understood by the game library."""

        options: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "version": self.version,
            "auth": self.auth,
            "physicsEnabled": self.physics_enabled,
            "disableChatSigning": self.disable_chat_signing,
        }
        if self.password:
            options["password"] = self.password
        if self.fake_host:
            options["fakeHost"] = self.fake_host
        return options


class ConnectionListener(Protocol):
    """Receiver of the low-level signals a connection emits."""

    def on_login(self) -> None: ...

    def on_spawn(self) -> None: ...

    def on_chat(self, username: str, message: str) -> None: ...

    def on_message(self, text: str) -> None: ...

    def on_health(self, health: float, food: float, saturation: float) -> None: ...

    def on_experience(self, level: int, points: int, progress: float) -> None: ...

    def on_inventory(self, items: Sequence[InventoryItem]) -> None: ...

    def on_error(self, message: str) -> None: ...

    def on_kicked(self, reason: str) -> None: ...

    def on_death(self) -> None: ...

    def on_end(self, reason: str) -> None: ...

    def on_open_failed(self, message: str) -> None: ...


class GameConnection(Protocol):
    """Control surface of one live connection."""

    @property
    def ended(self) -> bool:
        """Return ``True`` once the underlying connection has closed."""

    def chat(self, message: str) -> None:
        """Send a chat line or command."""

    def set_control_state(self, control: str, state: bool) -> None:
        """Press or release a movement control."""

    def look(self, yaw: float, pitch: float) -> None:
        """Turn the head to the given angles in radians."""

    def swing_arm(self) -> None:
        """Swing the main arm once."""

    def quit(self) -> None:
        """Close the connection."""


class ConnectionFactory(Protocol):
    """Open connections that report their signals to ``listener``.

    Signals must be delivered on the event loop thread.
    """

    def warm_up(self) -> None:
        """Load the underlying library; blocking, so callers run it off the loop."""

    def create(self, options: ConnectionOptions, listener: ConnectionListener) -> GameConnection:
        """Start connecting and return the connection handle immediately."""
