"""Socket.IO push channel between operator clients and the event bus."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping

import socketio

from afkconsole.application.command_gateway import CommandGateway
from afkconsole.application.event_bus import EventBus

logger = logging.getLogger(__name__)


def create_socketio_server(allowed_origins: Iterable[str]) -> socketio.AsyncServer:
    """Return the ASGI Socket.IO server accepting ``allowed_origins``."""

    origins = list(allowed_origins)
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if "*" in origins else origins,
        logger=False,
        engineio_logger=False,
    )


class SocketIOSubscriber:
    """One connected client; every event is emitted to its session id only."""

    def __init__(self, server: socketio.AsyncServer, sid: str) -> None:
        self._server = server
        self.sid = sid
        self._pending: set[asyncio.Future] = set()

    def send(self, event: str, payload: Mapping[str, Any]) -> None:
        task = self._server.start_background_task(self._server.emit, event, dict(payload), to=self.sid)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


class PushChannel:
    """Subscribe Socket.IO clients to the bus and route their commands.

    Every command name known to the gateway is registered as a Socket.IO
    event. Handlers never raise: rejected commands are logged and dropped.
    """

    def __init__(self, server: socketio.AsyncServer, bus: EventBus, gateway: CommandGateway) -> None:
        self._server = server
        self._bus = bus
        self._gateway = gateway
        self._subscribers: dict[str, SocketIOSubscriber] = {}

        server.on("connect", self.on_connect)
        server.on("disconnect", self.on_disconnect)
        for command in gateway.commands:
            server.on(command, self._command_handler(command))
        server.on("*", self.on_unknown_event)

    @property
    def client_count(self) -> int:
        return len(self._subscribers)

    async def on_connect(self, sid: str, environ: Mapping[str, Any], auth: Any = None) -> None:
        subscriber = SocketIOSubscriber(self._server, sid)
        self._subscribers[sid] = subscriber
        self._bus.subscribe(subscriber)
        logger.info("Push client %s connected (%d subscribed)", sid, self._bus.subscriber_count)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        subscriber = self._subscribers.pop(sid, None)
        if subscriber is not None:
            self._bus.unsubscribe(subscriber)
        logger.info("Push client %s disconnected", sid)

    async def on_unknown_event(self, event: str, sid: str, *args: Any) -> None:
        logger.warning("Ignoring unknown event %r from %s", event, sid)

    async def dispatch(self, sid: str, command: str, data: Any = None) -> None:
        """Run ``command`` for client ``sid``."""

        if data is not None and not isinstance(data, Mapping):
            logger.warning("Rejected %s from %s: payload must be an object", command, sid)
            return
        try:
            self._gateway.dispatch(command, data, self._subscribers.get(sid))
        except ValueError as error:
            logger.warning("Rejected %s from %s: %s", command, sid, error)
        except Exception:
            logger.exception("Command %s from %s failed", command, sid)

    def _command_handler(self, command: str):
        async def handle(sid: str, data: Any = None, *extra: Any) -> None:
            await self.dispatch(sid, command, data)

        handle.__name__ = f"on_{command.replace('-', '_')}"
        return handle
