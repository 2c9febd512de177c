"""Registry owning every live bot session."""
from __future__ import annotations

import logging
import random

from afkconsole.application.bot_session import CONNECT_TIMEOUT_SECONDS, BotSession
from afkconsole.application.event_bus import EventBus
from afkconsole.application.scheduling import Scheduler, TimerHandle
from afkconsole.domain.gateways.game_connection import ConnectionFactory
from afkconsole.domain.models.account import find_account
from afkconsole.domain.models.events import ErrorEvent, ReconnectingEvent, SessionStatus, StatusEvent
from afkconsole.domain.models.proxy import ProxyPool
from afkconsole.domain.repositories.account_repository import AccountRepository
from afkconsole.domain.repositories.proxy_repository import ProxyRepository
from afkconsole.domain.repositories.server_profile_repository import ServerProfileRepository
from afkconsole.domain.repositories.settings_repository import SettingsRepository

logger = logging.getLogger(__name__)

CONNECT_ALL_STAGGER_SECONDS = 3.0


class SessionRegistryError(Exception):
    """Base class for registry command failures."""

    def __init__(self, account_id: str, message: str) -> None:
        super().__init__(message)
        self.account_id = account_id


class AlreadyConnectedError(SessionRegistryError):
    """Signal that the account already owns a live session."""

    def __init__(self, account_id: str) -> None:
        super().__init__(account_id, "Bot already connected")


class AccountNotFoundError(SessionRegistryError):
    """Signal that no account is registered under the requested name."""

    def __init__(self, account_id: str) -> None:
        super().__init__(account_id, "Bot not found")


class SessionRegistry:
    """Map account names to their single live session.

    All mutations happen on the event loop thread. A session is registered
    before its connection is opened, so a second connect for the same
    account is rejected deterministically.
    """

    def __init__(
        self,
        *,
        server_repository: ServerProfileRepository,
        settings_repository: SettingsRepository,
        account_repository: AccountRepository,
        proxy_repository: ProxyRepository,
        connection_factory: ConnectionFactory,
        scheduler: Scheduler,
        bus: EventBus,
        connect_timeout_seconds: float = CONNECT_TIMEOUT_SECONDS,
        connect_all_stagger_seconds: float = CONNECT_ALL_STAGGER_SECONDS,
        rng: random.Random | None = None,
    ) -> None:
        self._server_repository = server_repository
        self._settings_repository = settings_repository
        self._account_repository = account_repository
        self._proxy_repository = proxy_repository
        self._connection_factory = connection_factory
        self._scheduler = scheduler
        self._bus = bus
        self._connect_timeout_seconds = connect_timeout_seconds
        self._connect_all_stagger_seconds = connect_all_stagger_seconds
        self._rng = rng or random.Random()
        self._sessions: dict[str, BotSession] = {}
        self._manual_disconnects: set[str] = set()
        self._reconnect_timers: dict[str, TimerHandle] = {}
        self._pending_connects: dict[str, TimerHandle] = {}

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get_session(self, account_id: str) -> BotSession | None:
        return self._sessions.get(account_id)

    def active_session(self, account_id: str) -> BotSession | None:
        """Return the session only while it is logged in and open."""

        session = self._sessions.get(account_id)
        if session is None or not session.is_active:
            return None
        return session

    def account_ids(self) -> list[str]:
        return list(self._sessions)

    def get_status(self, account_id: str) -> StatusEvent | None:
        """Return the last known status, kept after the session ended."""

        return self._bus.last_status(account_id)

    def has_pending_timers(self, account_id: str) -> bool:
        """Return ``True`` while any timer for ``account_id`` is scheduled."""

        session = self._sessions.get(account_id)
        return (
            (session is not None and len(session.timers) > 0)
            or account_id in self._reconnect_timers
            or account_id in self._pending_connects
        )

    def connect(self, account_id: str, protocol_version: str | None = None) -> BotSession:
        """Create, register and start a session for ``account_id``."""

        if account_id in self._sessions:
            raise AlreadyConnectedError(account_id)

        account = find_account(self._account_repository.load(), account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        server = self._server_repository.load()
        behavior = self._settings_repository.load()
        proxy_pool = self._proxy_repository.load() if behavior.use_proxies else ProxyPool()

        self._manual_disconnects.discard(account_id)
        self._cancel_timer(self._reconnect_timers, account_id)
        self._cancel_timer(self._pending_connects, account_id)

        session = BotSession(
            account,
            server,
            behavior,
            proxy_pool,
            connection_factory=self._connection_factory,
            scheduler=self._scheduler,
            bus=self._bus,
            on_finished=self._session_finished,
            protocol_version=protocol_version,
            connect_timeout_seconds=self._connect_timeout_seconds,
            rng=self._rng,
        )
        self._sessions[account_id] = session
        session.start()
        return session

    def disconnect(self, account_id: str) -> bool:
        """Close the account's session and suppress its auto-reconnect.

        Returns ``False`` when there was no session; calling it again is
        harmless.
        """

        self._manual_disconnects.add(account_id)
        self._cancel_timer(self._reconnect_timers, account_id)
        self._cancel_timer(self._pending_connects, account_id)

        session = self._sessions.pop(account_id, None)
        if session is None:
            return False
        session.close()
        logger.info("Disconnected %s on request", account_id)
        self._bus.publish(StatusEvent(account_id, SessionStatus.DISCONNECTED, "Disconnected"))
        return True

    def connect_all(self, protocol_version: str | None = None) -> list[str]:
        """Stagger connects for every account without a session.

        Returns the account names that were scheduled.
        """

        scheduled: list[str] = []
        for account in self._account_repository.load():
            account_id = account.username
            if account_id in self._sessions or account_id in self._pending_connects:
                continue
            delay = len(scheduled) * self._connect_all_stagger_seconds
            self._pending_connects[account_id] = self._scheduler.call_later(
                delay, self._run_pending_connect, account_id, protocol_version
            )
            scheduled.append(account_id)
        logger.info("Connecting %d account(s)", len(scheduled))
        return scheduled

    def disconnect_all(self) -> list[str]:
        """Disconnect every account in the list plus any orphan session."""

        account_ids = [account.username for account in self._account_repository.load()]
        account_ids.extend(
            account_id
            for account_id in list(self._sessions) + list(self._pending_connects)
            if account_id not in account_ids
        )
        return [account_id for account_id in account_ids if self.disconnect(account_id)]

    def shutdown(self) -> None:
        """Close every session and cancel every timer."""

        for handles in (self._reconnect_timers, self._pending_connects):
            for handle in handles.values():
                handle.cancel()
            handles.clear()
        for account_id, session in list(self._sessions.items()):
            self._manual_disconnects.add(account_id)
            session.close()
        self._sessions.clear()
        logger.info("Session registry drained")

    def _session_finished(self, session: BotSession, reconnect: bool) -> None:
        account_id = session.account_id
        if self._sessions.get(account_id) is session:
            del self._sessions[account_id]
        if not reconnect or account_id in self._manual_disconnects:
            return
        delay = session.behavior.auto_reconnect.delay_seconds
        logger.info("Reconnecting %s in %ss", account_id, delay)
        self._cancel_timer(self._reconnect_timers, account_id)
        self._reconnect_timers[account_id] = self._scheduler.call_later(
            delay, self._reconnect, account_id, session.protocol_version
        )

    def _reconnect(self, account_id: str, protocol_version: str | None) -> None:
        self._reconnect_timers.pop(account_id, None)
        if account_id in self._manual_disconnects or account_id in self._sessions:
            return
        self._bus.publish(ReconnectingEvent(account_id))
        self._connect_reporting_errors(account_id, protocol_version)

    def _run_pending_connect(self, account_id: str, protocol_version: str | None) -> None:
        self._pending_connects.pop(account_id, None)
        if account_id in self._sessions:
            return
        self._connect_reporting_errors(account_id, protocol_version)

    def _connect_reporting_errors(self, account_id: str, protocol_version: str | None) -> None:
        try:
            self.connect(account_id, protocol_version)
        except SessionRegistryError as error:
            self._bus.publish(ErrorEvent(account_id, str(error)))
        except Exception as error:
            logger.exception("Connecting %s failed", account_id)
            self._bus.publish(ErrorEvent(account_id, str(error) or error.__class__.__name__))

    @staticmethod
    def _cancel_timer(timers: dict[str, TimerHandle], account_id: str) -> None:
        handle = timers.pop(account_id, None)
        if handle is not None:
            handle.cancel()
