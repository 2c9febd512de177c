"""Dispatcher for operator commands arriving over the push channel."""
from __future__ import annotations

import logging
import math
from typing import Any, Callable, Mapping

from afkconsole.application.bot_session import BotSession
from afkconsole.application.event_bus import EventBus, Subscriber
from afkconsole.application.session_registry import SessionRegistry, SessionRegistryError
from afkconsole.domain.models.events import ErrorEvent

logger = logging.getLogger(__name__)

CONNECT_BOT = "connect-bot"
DISCONNECT_BOT = "disconnect-bot"
CONNECT_ALL_BOTS = "connect-all-bots"
DISCONNECT_ALL_BOTS = "disconnect-all-bots"
SEND_CHAT = "send-chat"
SEND_SPAM = "send-spam"
CONTROL_BOT = "control-bot"
REQUEST_SYNC = "request-sync"


class UnknownCommandError(ValueError):
    """Signal that a command name is not part of the push protocol."""


class CommandGateway:
    """Validate inbound commands and route them to the registry or a session.

    Commands addressed to a session that is not logged in are dropped on
    purpose; the drop is traced at debug level.
    """

    def __init__(self, registry: SessionRegistry, bus: EventBus) -> None:
        self._registry = registry
        self._bus = bus
        self._handlers: dict[str, Callable[[Mapping[str, Any], Subscriber | None], None]] = {
            CONNECT_BOT: self._connect_bot,
            DISCONNECT_BOT: self._disconnect_bot,
            CONNECT_ALL_BOTS: self._connect_all,
            DISCONNECT_ALL_BOTS: self._disconnect_all,
            SEND_CHAT: self._send_chat,
            SEND_SPAM: self._send_spam,
            CONTROL_BOT: self._control_bot,
            REQUEST_SYNC: self._request_sync,
        }

    @property
    def commands(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def dispatch(
        self,
        command: str,
        data: Mapping[str, Any] | None = None,
        subscriber: Subscriber | None = None,
    ) -> None:
        """Run ``command`` with ``data`` on behalf of ``subscriber``."""

        handler = self._handlers.get(command)
        if handler is None:
            raise UnknownCommandError(f"Unknown command {command!r}.")
        payload = data if isinstance(data, Mapping) else {}
        logger.debug("Dispatching %s %s", command, _describe(payload))
        handler(payload, subscriber)

    def _connect_bot(self, data: Mapping[str, Any], subscriber: Subscriber | None) -> None:
        account_id = _account_id(data)
        if account_id is None:
            logger.warning("Ignoring %s without a bot name", CONNECT_BOT)
            return
        try:
            self._registry.connect(account_id, _optional_str(data.get("version")))
        except SessionRegistryError as error:
            self._bus.publish(ErrorEvent(account_id, str(error)))
        except Exception as error:
            logger.exception("Connecting %s failed", account_id)
            self._bus.publish(ErrorEvent(account_id, str(error) or error.__class__.__name__))

    def _disconnect_bot(self, data: Mapping[str, Any], subscriber: Subscriber | None) -> None:
        account_id = _account_id(data)
        if account_id is None:
            logger.warning("Ignoring %s without a bot name", DISCONNECT_BOT)
            return
        self._registry.disconnect(account_id)

    def _connect_all(self, data: Mapping[str, Any], subscriber: Subscriber | None) -> None:
        self._registry.connect_all(_optional_str(data.get("version")))

    def _disconnect_all(self, data: Mapping[str, Any], subscriber: Subscriber | None) -> None:
        self._registry.disconnect_all()

    def _send_chat(self, data: Mapping[str, Any], subscriber: Subscriber | None) -> None:
        session = self._target(data, SEND_CHAT)
        message = data.get("message")
        if session is None or not isinstance(message, str) or not message:
            return
        session.send_chat(message)

    def _send_spam(self, data: Mapping[str, Any], subscriber: Subscriber | None) -> None:
        session = self._target(data, SEND_SPAM)
        if session is None:
            return
        message = data.get("message")
        enable = bool(data.get("enable"))
        delay = _optional_float(data.get("delay"))
        if enable and delay is not None and (delay < 0 or not math.isfinite(delay)):
            self._bus.publish(
                ErrorEvent(session.account_id, "Spam delay must be a positive number of seconds")
            )
            return
        session.set_spam(message if isinstance(message, str) else None, delay, enable)

    def _control_bot(self, data: Mapping[str, Any], subscriber: Subscriber | None) -> None:
        session = self._target(data, CONTROL_BOT)
        if session is None:
            return
        action = data.get("action")
        option = data.get("option")
        if action == "move":
            session.move(option if isinstance(option, str) else None)
        elif action == "look":
            angles = option if isinstance(option, Mapping) else {}
            yaw = _optional_float(angles.get("yaw"))
            pitch = _optional_float(angles.get("pitch"))
            if yaw is None or pitch is None:
                logger.warning("Ignoring look without yaw and pitch for %s", session.account_id)
                return
            session.look(yaw, pitch)
        elif action == "jump":
            session.jump()
        elif action == "swing":
            session.swing()
        else:
            logger.warning("Ignoring unknown control action %r for %s", action, session.account_id)

    def _request_sync(self, data: Mapping[str, Any], subscriber: Subscriber | None) -> None:
        if subscriber is None:
            return
        self._bus.resync(subscriber)

    def _target(self, data: Mapping[str, Any], command: str) -> BotSession | None:
        account_id = _account_id(data)
        if account_id is None:
            logger.warning("Ignoring %s without a bot name", command)
            return None
        session = self._registry.active_session(account_id)
        if session is None:
            logger.debug("Dropping %s for %s: no active session", command, account_id)
        return session


def _account_id(data: Mapping[str, Any]) -> str | None:
    value = data.get("botName")
    if isinstance(value, str) and value:
        return value
    return None


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _describe(data: Mapping[str, Any]) -> str:
    account_id = data.get("botName")
    return f"for {account_id}" if account_id else ""
