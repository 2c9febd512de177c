"""Live session of one account against the configured game server."""
from __future__ import annotations

import logging
import random
from typing import Any, Callable, Iterable, Sequence

from afkconsole.application.event_bus import EventBus
from afkconsole.application.scheduling import (
    RecurringTimer,
    ScheduledPlan,
    Scheduler,
    SessionTimers,
)
from afkconsole.domain.gateways.game_connection import (
    MOVEMENT_CONTROLS,
    ConnectionFactory,
    ConnectionOptions,
    GameConnection,
)
from afkconsole.domain.models.account import Account, AuthMode
from afkconsole.domain.models.behavior_settings import BehaviorSettings, MessagePolicy
from afkconsole.domain.models.events import (
    AuthChallengeEvent,
    ChatEvent,
    ErrorEvent,
    ExperienceEvent,
    HealthEvent,
    InventoryEvent,
    InventoryItem,
    SessionStatus,
    StatusEvent,
)
from afkconsole.domain.models.proxy import ProxyPool
from afkconsole.domain.models.server_profile import DEFAULT_PROTOCOL_VERSION, ServerProfile
from afkconsole.domain.models.session_state import SessionSignal, SessionState, next_state
from afkconsole.domain.services.action_planner import (
    ActionKind,
    PlannedAction,
    plan_anti_idle_tick,
    plan_message_burst,
    plan_pulse,
)
from afkconsole.domain.services.error_classifier import ErrorKind, classify_error

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 45.0
INVENTORY_DEBOUNCE_SECONDS = 0.5
SNEAK_DELAY_SECONDS = 0.5
DEFAULT_SPAM_DELAY_SECONDS = 20.0
SERVER_CHAT_USERNAME = "Server"

# Timer slot names.
LOGIN_DELAY = "login_delay"
CONNECT_TIMEOUT = "connect_timeout"
JOIN_MESSAGES = "join_messages"
WORLD_MESSAGES = "world_change_messages"
SNEAK = "sneak"
ANTI_IDLE = "anti_idle"
ANTI_IDLE_TICK = "anti_idle_tick"
SPAM = "spam"
JUMP_PULSE = "jump_pulse"
INVENTORY_DEBOUNCE = "inventory_debounce"

SessionFinished = Callable[["BotSession", bool], None]


class BotSession:
    """Own one account's connection, timers and lifecycle.

    The session moves through ``CONNECTING -> CONNECTED -> SPAWNED -> ENDED``
    driven by signals from the connection. Every delayed action is held in
    ``timers`` and cancelled on any exit path. When the session ends on its
    own, ``on_finished(session, reconnect)`` tells the owner whether the
    auto-reconnect policy applies.
    """

    def __init__(
        self,
        account: Account,
        server: ServerProfile,
        behavior: BehaviorSettings,
        proxy_pool: ProxyPool,
        *,
        connection_factory: ConnectionFactory,
        scheduler: Scheduler,
        bus: EventBus,
        on_finished: SessionFinished,
        protocol_version: str | None = None,
        connect_timeout_seconds: float = CONNECT_TIMEOUT_SECONDS,
        rng: random.Random | None = None,
    ) -> None:
        self._account = account
        self._server = server
        self._behavior = behavior
        self._proxy_pool = proxy_pool
        self._connection_factory = connection_factory
        self._scheduler = scheduler
        self._bus = bus
        self._on_finished = on_finished
        self._protocol_version = protocol_version or server.protocol_version or DEFAULT_PROTOCOL_VERSION
        self._connect_timeout_seconds = connect_timeout_seconds
        self._rng = rng or random.Random()
        self._state = SessionState.CONNECTING
        self._connection: GameConnection | None = None
        self._pending_inventory: list[InventoryItem] | None = None
        self.timers = SessionTimers()

    @property
    def account_id(self) -> str:
        return self._account.username

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def protocol_version(self) -> str:
        return self._protocol_version

    @property
    def behavior(self) -> BehaviorSettings:
        return self._behavior

    @property
    def connection(self) -> GameConnection | None:
        return self._connection

    @property
    def is_active(self) -> bool:
        """Return ``True`` while logged in with an open connection."""

        return (
            self._state.is_active
            and self._connection is not None
            and not self._connection.ended
        )

    # Lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Report ``connecting`` and open the connection after the login delay."""

        self._publish_status(SessionStatus.CONNECTING, "Connecting...")
        self.timers.set(
            LOGIN_DELAY,
            self._scheduler.call_later(self._server.login_delay_seconds, self._open_connection),
        )

    def build_options(self) -> ConnectionOptions:
        """Assemble the connection options for this account."""

        account = self._account
        proxy = None
        if self._behavior.use_proxies:
            proxy = self._proxy_pool.choose(self._rng)
        password = account.password if account.auth_mode is AuthMode.MICROSOFT else None
        return ConnectionOptions(
            host=self._server.host,
            port=self._server.port,
            username=account.username,
            version=self._protocol_version,
            auth=account.auth_mode.value,
            physics_enabled=self._behavior.physics_enabled,
            password=password,
            proxy=proxy,
            fake_host=self._server.host if self._behavior.fake_host else None,
        )

    def close(self) -> None:
        """End the session on operator request, without reconnecting."""

        if not self._transition(SessionSignal.CLOSE):
            return
        self.timers.cancel_all()
        self._quit_connection()

    def _open_connection(self) -> None:
        self.timers.discard(LOGIN_DELAY)
        if self._state is not SessionState.CONNECTING:
            return
        try:
            options = self.build_options()
            self._connection = self._connection_factory.create(options, self)
        except Exception as error:
            logger.exception("Could not open a connection for %s", self.account_id)
            self._force_terminate(str(error) or error.__class__.__name__)
            return
        logger.info(
            "Connecting %s to %s:%s (version %s%s)",
            self.account_id,
            options.host,
            options.port,
            options.version,
            ", via proxy" if options.proxy else "",
        )
        self.timers.set(
            CONNECT_TIMEOUT,
            self._scheduler.call_later(self._connect_timeout_seconds, self._on_connect_timeout),
        )

    def _on_connect_timeout(self) -> None:
        self.timers.discard(CONNECT_TIMEOUT)
        if self._state is not SessionState.CONNECTING:
            return
        seconds = int(self._connect_timeout_seconds)
        logger.warning("Connection of %s timed out after %ss", self.account_id, seconds)
        self._force_terminate(f"Connection timed out after {seconds}s")

    def _force_terminate(self, message: str) -> None:
        """Report ``message`` and tear the session down without reconnecting."""

        if not self._transition(SessionSignal.ABORT):
            return
        self.timers.cancel_all()
        self._publish_error(message)
        self._quit_connection()
        self._publish_status(SessionStatus.DISCONNECTED, f"Disconnected: {message}")
        self._on_finished(self, False)

    def _finish(self, reconnect: bool) -> None:
        self._state = SessionState.ENDED
        self.timers.cancel_all()
        self._on_finished(self, reconnect and self._behavior.auto_reconnect.enabled)

    def _transition(self, signal: SessionSignal) -> bool:
        target = next_state(self._state, signal)
        if target is None:
            logger.debug("Ignoring %s for %s in state %s", signal.value, self.account_id, self._state.value)
            return False
        self._state = target
        return True

    def _quit_connection(self) -> None:
        connection = self._connection
        if connection is None or connection.ended:
            return
        try:
            connection.quit()
        except Exception:
            logger.warning("Quitting the connection of %s failed", self.account_id, exc_info=True)

    # Connection signals ------------------------------------------------

    def on_login(self) -> None:
        if not self._transition(SessionSignal.LOGIN):
            return
        self.timers.cancel(CONNECT_TIMEOUT)
        self._publish_status(SessionStatus.CONNECTED, "Connected")
        self._schedule_messages(JOIN_MESSAGES, self._behavior.join_messages)
        if self._behavior.sneak_on_spawn:
            self.timers.set(
                SNEAK,
                self._scheduler.call_later(
                    SNEAK_DELAY_SECONDS,
                    self._guarded(lambda connection: connection.set_control_state("sneak", True)),
                ),
            )

    def on_spawn(self) -> None:
        if not self._transition(SessionSignal.SPAWN):
            return
        self.timers.cancel(CONNECT_TIMEOUT)
        self._publish_status(SessionStatus.SPAWNED, "Spawned")
        self._schedule_messages(WORLD_MESSAGES, self._behavior.world_change_messages)
        self._start_anti_idle()

    def on_end(self, reason: str | None = None) -> None:
        if not self._transition(SessionSignal.END):
            return
        logger.info("%s disconnected: %s", self.account_id, reason or "Unknown")
        self._publish_status(SessionStatus.DISCONNECTED, f"Disconnected: {reason or 'Unknown'}")
        self._finish(reconnect=True)

    def on_open_failed(self, message: str) -> None:
        if self._state is not SessionState.CONNECTING:
            return
        logger.warning("Could not open a connection for %s: %s", self.account_id, message)
        self._force_terminate(message)

    def on_kicked(self, reason: str | None = None) -> None:
        if self._state is SessionState.ENDED:
            return
        self._publish_status(SessionStatus.KICKED, f"Kicked: {reason}")

    def on_death(self) -> None:
        if self._state is SessionState.ENDED:
            return
        self._publish_status(SessionStatus.DEATH, "Died and respawned")

    def on_chat(self, username: str, message: str) -> None:
        if self._state is SessionState.ENDED:
            return
        self._bus.publish(ChatEvent(self.account_id, username, message))

    def on_message(self, text: str) -> None:
        if self._state is SessionState.ENDED:
            return
        self._bus.publish(ChatEvent(self.account_id, SERVER_CHAT_USERNAME, text))

    def on_health(self, health: float, food: float, saturation: float) -> None:
        if self._state is SessionState.ENDED:
            return
        self._bus.publish(HealthEvent(self.account_id, health, food, saturation))

    def on_experience(self, level: int, points: int, progress: float) -> None:
        if self._state is SessionState.ENDED:
            return
        self._bus.publish(ExperienceEvent(self.account_id, level, points, progress))

    def on_inventory(self, items: Sequence[InventoryItem]) -> None:
        """Coalesce inventory updates arriving within the debounce window."""

        if self._state is SessionState.ENDED:
            return
        self._pending_inventory = list(items)
        if INVENTORY_DEBOUNCE not in self.timers:
            self.timers.set(
                INVENTORY_DEBOUNCE,
                self._scheduler.call_later(INVENTORY_DEBOUNCE_SECONDS, self._flush_inventory),
            )

    def on_error(self, message: str) -> None:
        if self._state is SessionState.ENDED:
            return
        classification = classify_error(message)
        if classification.kind is ErrorKind.IGNORABLE:
            logger.debug("Ignoring protocol noise for %s: %s", self.account_id, message)
        elif classification.kind is ErrorKind.AUTH_CHALLENGE:
            logger.info("%s needs device login with code %s", self.account_id, classification.auth_code)
            self._bus.publish(
                AuthChallengeEvent(self.account_id, classification.auth_code or "", classification.message)
            )
        elif classification.kind is ErrorKind.TIMEOUT:
            logger.warning("%s connection timed out: %s", self.account_id, message)
            self._force_terminate(classification.message)
        else:
            logger.warning("%s reported an error: %s", self.account_id, message)
            self._publish_error(classification.message)

    def _flush_inventory(self) -> None:
        self.timers.discard(INVENTORY_DEBOUNCE)
        items, self._pending_inventory = self._pending_inventory, None
        if items is None or self._state is SessionState.ENDED:
            return
        self._bus.publish(InventoryEvent(self.account_id, items))

    # Behavior timers ---------------------------------------------------

    def _schedule_messages(self, slot: str, policy: MessagePolicy) -> None:
        if not policy.enabled:
            return
        plan = plan_message_burst(policy.messages, policy.delay_seconds)
        if plan:
            self.timers.set(slot, self._run_plan(plan))

    def _start_anti_idle(self) -> None:
        settings = self._behavior.anti_idle
        if not settings.enabled:
            return
        self.timers.set(
            ANTI_IDLE,
            RecurringTimer(self._scheduler, settings.interval_seconds, self._anti_idle_tick),
        )

    def _anti_idle_tick(self) -> None:
        if not self.is_active:
            self.timers.cancel(ANTI_IDLE)
            return
        plan = plan_anti_idle_tick(self._behavior.anti_idle, self._rng)
        self.timers.set(ANTI_IDLE_TICK, self._run_plan(plan))

    def _run_plan(self, plan: Iterable[PlannedAction]) -> ScheduledPlan:
        return ScheduledPlan(
            self._scheduler,
            ((action.offset, self._guarded(self._action_runner(action))) for action in plan),
        )

    @staticmethod
    def _action_runner(action: PlannedAction) -> Callable[[GameConnection], Any]:
        if action.kind is ActionKind.CONTROL:
            return lambda connection: connection.set_control_state(*action.args)
        if action.kind is ActionKind.LOOK:
            return lambda connection: connection.look(*action.args)
        if action.kind is ActionKind.SWING:
            return lambda connection: connection.swing_arm()
        return lambda connection: connection.chat(*action.args)

    def _guarded(self, action: Callable[[GameConnection], Any]) -> Callable[[], None]:
        """Wrap ``action`` so it only runs on an open connection and never raises."""

        def run() -> None:
            connection = self._connection
            if self._state is SessionState.ENDED or connection is None or connection.ended:
                return
            try:
                action(connection)
            except Exception as error:
                logger.warning("Scheduled action failed for %s", self.account_id, exc_info=True)
                self._publish_error(str(error) or error.__class__.__name__)

        return run

    # Operator controls -------------------------------------------------

    def send_chat(self, message: str) -> bool:
        if not self._accepts_commands("send-chat"):
            return False
        self._guarded(lambda connection: connection.chat(message))()
        return True

    def set_spam(self, message: str | None, delay_seconds: float | None, enable: bool) -> bool:
        """Replace the spam timer; a disabled or empty request only clears it."""

        if not self._accepts_commands("send-spam"):
            return False
        self.timers.cancel(SPAM)
        if enable and message:
            interval = float(delay_seconds or DEFAULT_SPAM_DELAY_SECONDS)
            send = self._guarded(lambda connection: connection.chat(message))

            def tick() -> None:
                if not self.is_active:
                    self.timers.cancel(SPAM)
                    return
                send()

            self.timers.set(SPAM, RecurringTimer(self._scheduler, interval, tick))
        return True

    def move(self, option: str | None) -> bool:
        """Activate exactly one movement control, or none for ``stop``."""

        if not self._accepts_commands("move"):
            return False

        def apply(connection: GameConnection) -> None:
            for control in MOVEMENT_CONTROLS:
                connection.set_control_state(control, control == option)

        self._guarded(apply)()
        return True

    def look(self, yaw: float, pitch: float) -> bool:
        if not self._accepts_commands("look"):
            return False
        self._guarded(lambda connection: connection.look(yaw, pitch))()
        return True

    def jump(self) -> bool:
        if not self._accepts_commands("jump"):
            return False
        self.timers.set(JUMP_PULSE, self._run_plan(plan_pulse("jump")))
        return True

    def swing(self) -> bool:
        if not self._accepts_commands("swing"):
            return False
        self._guarded(lambda connection: connection.swing_arm())()
        return True

    def _accepts_commands(self, command: str) -> bool:
        if self.is_active:
            return True
        logger.debug("Dropping %s for inactive session %s", command, self.account_id)
        return False

    # Events ------------------------------------------------------------

    def _publish_status(self, status: SessionStatus, message: str) -> None:
        self._bus.publish(StatusEvent(self.account_id, status, message))

    def _publish_error(self, message: str) -> None:
        self._bus.publish(ErrorEvent(self.account_id, message))
