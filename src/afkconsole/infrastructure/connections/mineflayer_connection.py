"""Game connections driven by mineflayer through the JavaScript bridge.

Importing the bridge starts a Node.js process, and ``require`` may install
missing npm packages, so both happen on worker threads: ``warm_up`` at
startup and bot creation through the loop's default executor. The bridge
delivers events on its own thread; every signal is handed to the asyncio
loop with ``call_soon_threadsafe`` before it reaches the session.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from importlib import import_module
from typing import Any, Callable

from afkconsole.domain.gateways.game_connection import (
    ConnectionListener,
    ConnectionOptions,
)
from afkconsole.domain.models.events import InventoryItem
from afkconsole.domain.models.proxy import ProxyDescriptor

logger = logging.getLogger(__name__)

MINEFLAYER_PACKAGE = "mineflayer"
PROXY_AGENT_PACKAGE = "proxy-agent"
PROXY_AGENT_VERSION = "5.0.0"


def build_proxy_url(proxy: ProxyDescriptor) -> str:
    """Return the ``http://`` URL understood by the proxy agent."""

    credentials = f"{proxy.username}:{proxy.password}@" if proxy.has_credentials else ""
    return f"http://{credentials}{proxy.host}:{proxy.port}"


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_inventory_items(raw_items: Any) -> list[InventoryItem]:
    """Convert serialized mineflayer items into domain inventory items."""

    items: list[InventoryItem] = []
    for raw in raw_items or []:
        if not isinstance(raw, dict):
            continue
        items.append(
            InventoryItem(
                type=_to_int(raw.get("type")),
                count=_to_int(raw.get("count")),
                name=str(raw.get("name") or ""),
                display_name=str(raw.get("displayName") or raw.get("name") or ""),
                slot=_to_int(raw.get("slot")),
            )
        )
    return items


class MineflayerConnection:
    """One mineflayer bot exposed through the ``GameConnection`` port.

    The handle exists before its bot: ``open`` creates the bot on a worker
    thread, and a ``quit`` requested in the meantime is applied once the
    bot is there. ``opening`` holds the executor future while it runs.
    """

    def __init__(self, listener: ConnectionListener, loop: asyncio.AbstractEventLoop) -> None:
        self._listener = listener
        self._loop = loop
        self._lock = threading.Lock()
        self._bot: Any | None = None
        self._ended = False
        self._quit_requested = False
        self.opening: asyncio.Future | None = None

    @property
    def ended(self) -> bool:
        return self._ended

    def open(self, bridge: Any, options: ConnectionOptions) -> None:
        """Create and wire the mineflayer bot. Blocks on the bridge."""

        mineflayer = bridge.require(MINEFLAYER_PACKAGE)
        bot_options = options.to_dict()
        if options.proxy is not None:
            proxy_agent = bridge.require(PROXY_AGENT_PACKAGE, PROXY_AGENT_VERSION)
            bot_options["agent"] = proxy_agent(build_proxy_url(options.proxy))
        bot = mineflayer.createBot(bot_options)
        self._bind_events(bridge, bot)
        with self._lock:
            self._bot = bot
            quit_now = self._quit_requested
        if quit_now:
            bot.quit()

    def chat(self, message: str) -> None:
        self._require_bot().chat(message)

    def set_control_state(self, control: str, state: bool) -> None:
        self._require_bot().setControlState(control, state)

    def look(self, yaw: float, pitch: float) -> None:
        self._require_bot().look(yaw, pitch)

    def swing_arm(self) -> None:
        self._require_bot().swingArm()

    def quit(self) -> None:
        with self._lock:
            if self._ended:
                return
            bot = self._bot
            if bot is None:
                self._quit_requested = True
                return
        bot.quit()

    def _require_bot(self) -> Any:
        if self._bot is None:
            raise RuntimeError("Connection is not open yet")
        return self._bot

    def _bind_events(self, bridge: Any, bot: Any) -> None:
        on = bridge.On

        @on(bot, "login")
        def handle_login(this: Any, *args: Any) -> None:
            self._dispatch(self._listener.on_login)

        @on(bot, "spawn")
        def handle_spawn(this: Any, *args: Any) -> None:
            self._dispatch(self._listener.on_spawn)

        @on(bot, "message")
        def handle_message(this: Any, json_message: Any, *args: Any) -> None:
            self._dispatch(self._listener.on_message, str(json_message.toString()))

        @on(bot, "chat")
        def handle_chat(this: Any, username: Any, message: Any, *args: Any) -> None:
            self._dispatch(self._listener.on_chat, str(username), str(message))

        @on(bot, "health")
        def handle_health(this: Any, *args: Any) -> None:
            self._dispatch(
                self._listener.on_health,
                _to_float(bot.health),
                _to_float(bot.food),
                _to_float(bot.foodSaturation),
            )

        @on(bot, "experience")
        def handle_experience(this: Any, *args: Any) -> None:
            experience = bot.experience
            self._dispatch(
                self._listener.on_experience,
                _to_int(experience.level),
                _to_int(experience.points),
                _to_float(experience.progress),
            )

        @on(bot.inventory, "updateSlot")
        def handle_inventory(this: Any, *args: Any) -> None:
            items = parse_inventory_items(bot.inventory.items().valueOf())
            self._dispatch(self._listener.on_inventory, items)

        @on(bot, "error")
        def handle_error(this: Any, error: Any, *args: Any) -> None:
            message = getattr(error, "message", None) or str(error)
            self._dispatch(self._listener.on_error, str(message))

        @on(bot, "kicked")
        def handle_kicked(this: Any, reason: Any, *args: Any) -> None:
            self._dispatch(self._listener.on_kicked, str(reason))

        @on(bot, "death")
        def handle_death(this: Any, *args: Any) -> None:
            self._dispatch(self._listener.on_death)

        @on(bot, "end")
        def handle_end(this: Any, reason: Any = None, *args: Any) -> None:
            self._ended = True
            self._dispatch(self._listener.on_end, str(reason) if reason else "")

    def _dispatch(self, callback: Callable[..., None], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(self._deliver, callback, *args)
        except RuntimeError:
            logger.debug("Event loop closed; dropping %s", getattr(callback, "__name__", callback))

    def _deliver(self, callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as error:
            logger.exception("Handling %s failed", getattr(callback, "__name__", callback))
            if callback != self._listener.on_error:
                self._listener.on_error(str(error) or error.__class__.__name__)

    def _opened(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is None:
            return
        logger.error("Could not create the mineflayer bot", exc_info=error)
        self._ended = True
        self._listener.on_open_failed(str(error) or error.__class__.__name__)


class MineflayerConnectionFactory:
    """Create mineflayer connections bound to the running event loop."""

    def __init__(self, bridge_module: str = "javascript") -> None:
        self._bridge_module = bridge_module
        self._bridge: Any | None = None
        self._lock = threading.Lock()

    def warm_up(self) -> None:
        """Start the bridge and load the npm packages bots need."""

        bridge = self._load_bridge()
        bridge.require(MINEFLAYER_PACKAGE)
        bridge.require(PROXY_AGENT_PACKAGE, PROXY_AGENT_VERSION)
        logger.info("JavaScript bridge ready with %s", MINEFLAYER_PACKAGE)

    def create(self, options: ConnectionOptions, listener: ConnectionListener) -> MineflayerConnection:
        loop = asyncio.get_running_loop()
        connection = MineflayerConnection(listener, loop)
        connection.opening = loop.run_in_executor(None, self._open, connection, options)
        connection.opening.add_done_callback(connection._opened)
        return connection

    def _open(self, connection: MineflayerConnection, options: ConnectionOptions) -> None:
        connection.open(self._load_bridge(), options)

    def _load_bridge(self) -> Any:
        with self._lock:
            if self._bridge is None:
                logger.info("Starting the JavaScript bridge for %s", MINEFLAYER_PACKAGE)
                self._bridge = import_module(self._bridge_module)
            return self._bridge
