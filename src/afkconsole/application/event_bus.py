"""Single broadcast point for domain events."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from afkconsole.domain.models.events import (
    NEW_LOG_EVENT,
    ChatEvent,
    DomainEvent,
    ExperienceEvent,
    HealthEvent,
    InventoryEvent,
    SessionStatus,
    StatusEvent,
    status_from_log_entry,
    to_log_entry,
)
from afkconsole.domain.repositories.event_log_repository import EventLogRepository

logger = logging.getLogger(__name__)

RESTART_MESSAGE = "Disconnected: backend restarted"


class Subscriber(Protocol):
    """An operator client receiving pushed events."""

    def send(self, event: str, payload: Mapping[str, Any]) -> None:
        """Queue ``payload`` under ``event`` without blocking."""


class EventBus:
    """Append every event to the rolling log and push it to all subscribers.

    The bus also remembers the last status of every account and the last
    telemetry of every live account, which is what a resync replays.
    """

    def __init__(self, log_repository: EventLogRepository, resync_chat_limit: int = 100) -> None:
        self._log_repository = log_repository
        self._resync_chat_limit = resync_chat_limit
        self._subscribers: list[Subscriber] = []
        self._statuses: dict[str, StatusEvent] = {}
        self._telemetry: dict[str, dict[str, DomainEvent]] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, subscriber: Subscriber) -> None:
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, event: DomainEvent) -> None:
        """Record ``event`` and broadcast it together with its log entry."""

        self._track(event)
        entry = to_log_entry(event)
        try:
            self._log_repository.append(entry)
        except OSError:
            logger.exception("Could not append %s to the event log", event.event_name)
        self._broadcast(event.event_name, event.to_dict())
        self._broadcast(NEW_LOG_EVENT, entry)

    def last_status(self, account_id: str) -> StatusEvent | None:
        return self._statuses.get(account_id)

    def statuses(self) -> dict[str, StatusEvent]:
        return dict(self._statuses)

    def telemetry(self, account_id: str) -> list[DomainEvent]:
        return list(self._telemetry.get(account_id, {}).values())

    def resync(self, subscriber: Subscriber) -> None:
        """Replay known state to one subscriber.

        Sends the last status of every known account, the last telemetry of
        each live account, then the most recent chat lines from the log.
        """

        for status in self._statuses.values():
            self._send(subscriber, status.event_name, status.to_dict())
        for snapshots in self._telemetry.values():
            for snapshot in snapshots.values():
                self._send(subscriber, snapshot.event_name, snapshot.to_dict())
        for entry in self._log_repository.recent(self._resync_chat_limit, ChatEvent.event_name):
            payload = {key: value for key, value in entry.items() if key not in ("type", "timestamp")}
            self._send(subscriber, ChatEvent.event_name, payload)

    def restore_from_log(self) -> None:
        """Rebuild last-known statuses from the persisted log.

        No session survives a restart, so live statuses come back as
        disconnected.
        """

        for entry in self._log_repository.load():
            status = status_from_log_entry(entry)
            if status is None:
                continue
            if status.status.is_live:
                status = StatusEvent(
                    account_id=status.account_id,
                    status=SessionStatus.DISCONNECTED,
                    message=RESTART_MESSAGE,
                    timestamp=status.timestamp,
                )
            self._statuses[status.account_id] = status

    def _track(self, event: DomainEvent) -> None:
        if isinstance(event, StatusEvent):
            self._statuses[event.account_id] = event
            if event.status is SessionStatus.DISCONNECTED:
                self._telemetry.pop(event.account_id, None)
        elif isinstance(event, (HealthEvent, ExperienceEvent, InventoryEvent)):
            self._telemetry.setdefault(event.account_id, {})[event.event_name] = event

    def _broadcast(self, event_name: str, payload: Mapping[str, Any]) -> None:
        for subscriber in list(self._subscribers):
            self._send(subscriber, event_name, payload)

    def _send(self, subscriber: Subscriber, event_name: str, payload: Mapping[str, Any]) -> None:
        try:
            subscriber.send(event_name, payload)
        except Exception:
            logger.warning("Dropping subscriber after failed %s delivery", event_name, exc_info=True)
            self.unsubscribe(subscriber)
