"""Domain events published by bot sessions and relayed to operator clients."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, List, Mapping, Union


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Return the ISO-8601 form used in the rolling log."""

    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SessionStatus(str, Enum):
    """Status values reported for a session."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    SPAWNED = "spawned"
    DISCONNECTED = "disconnected"
    KICKED = "kicked"
    DEATH = "death"

    @property
    def is_live(self) -> bool:
        """Return ``True`` for statuses implying an open connection attempt."""

        return self in (SessionStatus.CONNECTING, SessionStatus.CONNECTED, SessionStatus.SPAWNED)


@dataclass(frozen=True)
class StatusEvent:
    account_id: str
    status: SessionStatus
    message: str
    timestamp: datetime = field(default_factory=_utc_now)

    event_name: ClassVar[str] = "bot-status"

    def to_dict(self) -> dict[str, Any]:
        return {"botName": self.account_id, "status": self.status.value, "message": self.message}


@dataclass(frozen=True)
class ChatEvent:
    account_id: str
    username: str
    message: str
    timestamp: datetime = field(default_factory=_utc_now)

    event_name: ClassVar[str] = "bot-chat"

    def to_dict(self) -> dict[str, Any]:
        return {"botName": self.account_id, "username": self.username, "message": self.message}


@dataclass(frozen=True)
class HealthEvent:
    account_id: str
    health: float
    food: float
    saturation: float
    timestamp: datetime = field(default_factory=_utc_now)

    event_name: ClassVar[str] = "bot-health"

    def to_dict(self) -> dict[str, Any]:
        return {
            "botName": self.account_id,
            "health": self.health,
            "food": self.food,
            "saturation": self.saturation,
        }


@dataclass(frozen=True)
class ExperienceEvent:
    account_id: str
    level: int
    points: int
    progress: float
    timestamp: datetime = field(default_factory=_utc_now)

    event_name: ClassVar[str] = "bot-experience"

    def to_dict(self) -> dict[str, Any]:
        return {
            "botName": self.account_id,
            "level": self.level,
            "points": self.points,
            "progress": self.progress,
        }


@dataclass(frozen=True)
class InventoryItem:
    """One occupied inventory slot."""

    type: int
    count: int
    name: str
    display_name: str
    slot: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "count": self.count,
            "displayName": self.display_name,
            "name": self.name,
            "slot": self.slot,
        }


@dataclass(frozen=True)
class InventoryEvent:
    account_id: str
    items: List[InventoryItem]
    timestamp: datetime = field(default_factory=_utc_now)

    event_name: ClassVar[str] = "bot-inventory"

    def to_dict(self) -> dict[str, Any]:
        return {"botName": self.account_id, "items": [item.to_dict() for item in self.items]}


@dataclass(frozen=True)
class ErrorEvent:
    account_id: str
    error: str
    timestamp: datetime = field(default_factory=_utc_now)

    event_name: ClassVar[str] = "bot-error"

    def to_dict(self) -> dict[str, Any]:
        return {"botName": self.account_id, "error": self.error}


@dataclass(frozen=True)
class AuthChallengeEvent:
    """Device-code login request that the operator must complete by hand."""

    account_id: str
    code: str
    message: str
    timestamp: datetime = field(default_factory=_utc_now)

    event_name: ClassVar[str] = "microsoft-auth"

    def to_dict(self) -> dict[str, Any]:
        return {"botName": self.account_id, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class ReconnectingEvent:
    account_id: str
    timestamp: datetime = field(default_factory=_utc_now)

    event_name: ClassVar[str] = "reconnecting-bot"

    def to_dict(self) -> dict[str, Any]:
        return {"botName": self.account_id}


DomainEvent = Union[
    StatusEvent,
    ChatEvent,
    HealthEvent,
    ExperienceEvent,
    InventoryEvent,
    ErrorEvent,
    AuthChallengeEvent,
    ReconnectingEvent,
]

TELEMETRY_EVENTS = (HealthEvent, ExperienceEvent, InventoryEvent)

NEW_LOG_EVENT = "new-log"


def to_log_entry(event: DomainEvent) -> dict[str, Any]:
    """Return the rolling-log representation of ``event``."""

    entry: dict[str, Any] = {"type": event.event_name}
    entry.update(event.to_dict())
    entry["timestamp"] = format_timestamp(event.timestamp)
    return entry


def status_from_log_entry(entry: Mapping[str, Any]) -> StatusEvent | None:
    """Rebuild a status event from a log entry, ignoring foreign entries."""

    if entry.get("type") != StatusEvent.event_name:
        return None
    account_id = entry.get("botName")
    if not isinstance(account_id, str):
        return None
    try:
        status = SessionStatus(entry.get("status"))
    except ValueError:
        return None

    raw_timestamp = entry.get("timestamp")
    timestamp = _utc_now()
    if isinstance(raw_timestamp, str):
        try:
            timestamp = datetime.fromisoformat(raw_timestamp.replace("Z", "+00:00"))
        except ValueError:
            pass

    return StatusEvent(
        account_id=account_id,
        status=status,
        message=str(entry.get("message") or ""),
        timestamp=timestamp,
    )
