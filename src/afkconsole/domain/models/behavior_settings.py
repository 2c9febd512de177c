"""Domain models for the mutable bot behavior settings document."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping

DEFAULT_JOIN_MESSAGES = ("Hello world",)
DEFAULT_WORLD_CHANGE_MESSAGES = ("/home",)
DEFAULT_CHAT_PING = "/ping"

_LEGACY_MESSAGE_KEYS = (
    ("joinMessageText", "joinMessagesList", DEFAULT_JOIN_MESSAGES),
    ("worldChangeMessageText", "worldChangeMessagesList", DEFAULT_WORLD_CHANGE_MESSAGES),
)


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    return bool(value)


def _as_positive_number(value: Any, default: float, label: str) -> float:
    """Mirror the ``value || default`` convention of the stored documents."""

    if value is None or value == "" or value == 0:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.") from None
    if number < 0:
        raise ValueError(f"{label} cannot be negative.")
    return number


def clean_messages(messages: Iterable[Any] | None) -> List[str]:
    """Trim every entry and drop blank ones."""

    if messages is None:
        return []
    return [str(message).strip() for message in messages if str(message or "").strip()]


def migrate_settings_document(document: Mapping[str, Any]) -> tuple[dict[str, Any], bool]:
    """Apply the one-way message-list migration to a raw settings document.

    Legacy single-string message fields become singleton lists and are
    removed; missing lists receive their defaults. The migration is
    idempotent. Returns the migrated copy and whether anything changed.
    """

    migrated = dict(document)
    changed = False
    for legacy_key, list_key, default in _LEGACY_MESSAGE_KEYS:
        legacy_value = migrated.get(legacy_key)
        if isinstance(legacy_value, str) and not isinstance(migrated.get(list_key), list):
            migrated[list_key] = [legacy_value]
            changed = True
        if legacy_key in migrated:
            del migrated[legacy_key]
            changed = True
        if not isinstance(migrated.get(list_key), list):
            migrated[list_key] = list(default)
            changed = True
    return migrated, changed


@dataclass(frozen=True)
class IdleActions:
    """Physical micro-actions performed on each anti-idle tick."""

    forward: bool = True
    head: bool = True
    arm: bool = False
    jump: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {"forward": self.forward, "head": self.head, "arm": self.arm, "jump": self.jump}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "IdleActions":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("Anti-AFK physical actions must be a mapping.")
        defaults = cls()
        return cls(
            forward=_as_bool(data.get("forward"), defaults.forward),
            head=_as_bool(data.get("head"), defaults.head),
            arm=_as_bool(data.get("arm"), defaults.arm),
            jump=_as_bool(data.get("jump"), defaults.jump),
        )


@dataclass(frozen=True)
class ChatPing:
    """Optional chat line sent on each anti-idle tick."""

    enabled: bool = False
    message: str = DEFAULT_CHAT_PING

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "send": self.enabled}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ChatPing":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("Anti-AFK chat settings must be a mapping.")
        message = data.get("message")
        return cls(
            enabled=_as_bool(data.get("send"), False),
            message=str(message) if message is not None else DEFAULT_CHAT_PING,
        )


@dataclass(frozen=True)
class AntiIdleSettings:
    """Recurring synthetic activity preventing server-side idle kicks."""

    enabled: bool = True
    interval_minutes: float = 1
    actions: IdleActions = field(default_factory=IdleActions)
    chat_ping: ChatPing = field(default_factory=ChatPing)

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60


@dataclass(frozen=True)
class MessagePolicy:
    """Ordered chat lines sent once after a delay when a trigger occurs."""

    enabled: bool = True
    delay_seconds: float = 2
    messages: List[str] = field(default_factory=lambda: list(DEFAULT_JOIN_MESSAGES))


@dataclass(frozen=True)
class AutoReconnectSettings:
    """Reconnect policy applied after an unexpected disconnect."""

    enabled: bool = True
    delay_seconds: float = 4


@dataclass(frozen=True)
class BehaviorSettings:
    """The single mutable document configuring every bot session."""

    physics_enabled: bool = True
    sneak_on_spawn: bool = False
    anti_idle: AntiIdleSettings = field(default_factory=AntiIdleSettings)
    join_messages: MessagePolicy = field(default_factory=MessagePolicy)
    world_change_messages: MessagePolicy = field(
        default_factory=lambda: MessagePolicy(
            delay_seconds=5, messages=list(DEFAULT_WORLD_CHANGE_MESSAGES)
        )
    )
    auto_reconnect: AutoReconnectSettings = field(default_factory=AutoReconnectSettings)
    use_proxies: bool = False
    fake_host: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the stored document representation."""

        return {
            "sneak": self.sneak_on_spawn,
            "botPhysics": self.physics_enabled,
            "antiAFK": self.anti_idle.enabled,
            "antiAFKInterval": self.anti_idle.interval_minutes,
            "antiAFKPhysical": self.anti_idle.actions.to_dict(),
            "antiAFKChat": self.anti_idle.chat_ping.to_dict(),
            "joinMessages": self.join_messages.enabled,
            "joinMessageDelay": self.join_messages.delay_seconds,
            "joinMessagesList": list(self.join_messages.messages),
            "worldChangeMessages": self.world_change_messages.enabled,
            "worldChangeMessageDelay": self.world_change_messages.delay_seconds,
            "worldChangeMessagesList": list(self.world_change_messages.messages),
            "autoReconnect": self.auto_reconnect.enabled,
            "autoReconnectDelay": self.auto_reconnect.delay_seconds,
            "proxies": self.use_proxies,
            "fakeHost": self.fake_host,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BehaviorSettings":
        """Create the settings from a stored document, migrating legacy fields."""

        if not isinstance(data, Mapping):
            raise ValueError("Settings data must be a mapping.")

        document, _ = migrate_settings_document(data)
        defaults = cls()

        join_list = document["joinMessagesList"]
        world_list = document["worldChangeMessagesList"]

        return cls(
            physics_enabled=document.get("botPhysics") is not False,
            sneak_on_spawn=_as_bool(document.get("sneak"), defaults.sneak_on_spawn),
            anti_idle=AntiIdleSettings(
                enabled=_as_bool(document.get("antiAFK"), defaults.anti_idle.enabled),
                interval_minutes=_as_positive_number(
                    document.get("antiAFKInterval"),
                    defaults.anti_idle.interval_minutes,
                    "Anti-AFK interval",
                ),
                actions=IdleActions.from_dict(document.get("antiAFKPhysical")),
                chat_ping=ChatPing.from_dict(document.get("antiAFKChat")),
            ),
            join_messages=MessagePolicy(
                enabled=_as_bool(document.get("joinMessages"), defaults.join_messages.enabled),
                delay_seconds=_as_positive_number(
                    document.get("joinMessageDelay"),
                    defaults.join_messages.delay_seconds,
                    "Join message delay",
                ),
                messages=[str(message) for message in join_list],
            ),
            world_change_messages=MessagePolicy(
                enabled=_as_bool(
                    document.get("worldChangeMessages"),
                    defaults.world_change_messages.enabled,
                ),
                delay_seconds=_as_positive_number(
                    document.get("worldChangeMessageDelay"),
                    defaults.world_change_messages.delay_seconds,
                    "World change message delay",
                ),
                messages=[str(message) for message in world_list],
            ),
            auto_reconnect=AutoReconnectSettings(
                enabled=_as_bool(document.get("autoReconnect"), defaults.auto_reconnect.enabled),
                delay_seconds=_as_positive_number(
                    document.get("autoReconnectDelay"),
                    defaults.auto_reconnect.delay_seconds,
                    "Auto reconnect delay",
                ),
            ),
            use_proxies=_as_bool(document.get("proxies"), defaults.use_proxies),
            fake_host=_as_bool(document.get("fakeHost"), defaults.fake_host),
        )
