"""Test configuration ensuring the application package is importable."""
from __future__ import annotations

import heapq
import itertools
import random
import sys
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import pytest


def _ensure_src_on_path() -> None:
    """Add the project's ``src`` directory to ``sys.path`` when missing."""

    project_root = Path(__file__).resolve().parents[1]
    src_path = project_root / "src"
    src_path_str = str(src_path)
    if src_path_str not in sys.path:
        sys.path.insert(0, src_path_str)


_ensure_src_on_path()

from afkconsole.application.bot_session import BotSession  # noqa: E402
from afkconsole.application.event_bus import EventBus  # noqa: E402
from afkconsole.application.session_registry import SessionRegistry  # noqa: E402
from afkconsole.domain.gateways.game_connection import (  # noqa: E402
    ConnectionListener,
    ConnectionOptions,
)
from afkconsole.domain.models.account import Account, AuthMode  # noqa: E402
from afkconsole.domain.models.behavior_settings import BehaviorSettings  # noqa: E402
from afkconsole.domain.models.proxy import ProxyPool  # noqa: E402
from afkconsole.domain.models.server_profile import ServerProfile  # noqa: E402
from afkconsole.domain.repositories.event_log_repository import EventLogRepository  # noqa: E402


class _ManualHandle:
    """Timer handle returned by the manual scheduler."""

    def __init__(self, when: float, callback: Callable[..., Any], args: tuple) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock running callbacks only when the test advances time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, _ManualHandle]] = []
        self._order = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _ManualHandle:
        handle = _ManualHandle(self.now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._order), handle))
        return handle

    def advance(self, seconds: float) -> None:
        """Run every callback due within the next ``seconds``, in order."""

        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = max(self.now, when)
            handle.callback(*handle.args)
        self.now = target

    def pending(self) -> list[_ManualHandle]:
        return [handle for _, _, handle in self._queue if not handle.cancelled]


class FakeConnection:
    """Records every command sent to the game server."""

    def __init__(
        self,
        options: ConnectionOptions,
        listener: ConnectionListener,
        scheduler: ManualScheduler,
    ) -> None:
        self.options = options
        self.listener = listener
        self._scheduler = scheduler
        self.ended = False
        self.chats: list[tuple[float, str]] = []
        self.controls: list[tuple[float, str, bool]] = []
        self.looks: list[tuple[float, float]] = []
        self.swings = 0
        self.quit_calls = 0
        self.fail_chat_with: Exception | None = None

    def chat(self, message: str) -> None:
        if self.fail_chat_with is not None:
            raise self.fail_chat_with
        self.chats.append((self._scheduler.now, message))

    def set_control_state(self, control: str, state: bool) -> None:
        self.controls.append((self._scheduler.now, control, state))

    def look(self, yaw: float, pitch: float) -> None:
        self.looks.append((yaw, pitch))

    def swing_arm(self) -> None:
        self.swings += 1

    def quit(self) -> None:
        self.quit_calls += 1
        self.ended = True

    @property
    def messages(self) -> list[str]:
        return [message for _, message in self.chats]


class FakeConnectionFactory:
    """Connection factory handing out ``FakeConnection`` objects."""

    def __init__(self, scheduler: ManualScheduler) -> None:
        self._scheduler = scheduler
        self.connections: list[FakeConnection] = []
        self.fail_with: Exception | None = None
        self.warm_ups = 0

    def warm_up(self) -> None:
        self.warm_ups += 1

    def create(self, options: ConnectionOptions, listener: ConnectionListener) -> FakeConnection:
        if self.fail_with is not None:
            raise self.fail_with
        connection = FakeConnection(options, listener, self._scheduler)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


class RecordingSubscriber:
    """Subscriber remembering every frame it was sent."""

    def __init__(self) -> None:
        self.frames: list[tuple[str, dict[str, Any]]] = []

    def send(self, event: str, payload: Mapping[str, Any]) -> None:
        self.frames.append((event, dict(payload)))

    def payloads(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.frames if name == event]

    def statuses(self, account_id: str | None = None) -> list[str]:
        return [
            payload["status"]
            for payload in self.payloads("bot-status")
            if account_id is None or payload["botName"] == account_id
        ]

    def clear(self) -> None:
        self.frames.clear()


class EmitRecorder:
    """Stand-in for ``AsyncServer.emit`` remembering each emitted event."""

    def __init__(self) -> None:
        self.emitted: list[tuple[str | None, str, dict[str, Any]]] = []

    async def __call__(
        self, event: str, data: Any = None, to: str | None = None, **kwargs: Any
    ) -> None:
        self.emitted.append((to, event, data))

    def events(self, sid: str) -> list[tuple[str, dict[str, Any]]]:
        return [(event, data) for to, event, data in self.emitted if to == sid]


class InMemoryEventLogRepository(EventLogRepository):
    """Bounded event log kept in a list."""

    def __init__(self, limit: int = 1000, entries: Sequence[dict[str, Any]] = ()) -> None:
        self._limit = limit
        self.entries: list[dict[str, Any]] = list(entries)[-limit:]

    def append(self, entry: Mapping[str, Any]) -> None:
        self.entries.append(dict(entry))
        del self.entries[: max(0, len(self.entries) - self._limit)]

    def load(self) -> list[dict[str, Any]]:
        return list(self.entries)

    def recent(self, limit: int, event_type: str | None = None) -> list[dict[str, Any]]:
        matching = [e for e in self.entries if event_type is None or e.get("type") == event_type]
        return matching[-limit:] if limit > 0 else []


class InMemoryServerProfileRepository:
    def __init__(self, profile: ServerProfile | None = None) -> None:
        self.profile = profile or ServerProfile(host="play.example.net")

    def load(self) -> ServerProfile:
        return self.profile

    def save(self, profile: ServerProfile) -> None:
        self.profile = profile


class InMemorySettingsRepository:
    def __init__(self, settings: BehaviorSettings | None = None) -> None:
        self.settings = settings or BehaviorSettings()

    def load(self) -> BehaviorSettings:
        return self.settings

    def save(self, settings: BehaviorSettings) -> None:
        self.settings = settings


class InMemoryAccountRepository:
    def __init__(self, accounts: Sequence[Account] | None = None) -> None:
        self.accounts = list(accounts or [])

    def load(self) -> list[Account]:
        return list(self.accounts)

    def save(self, accounts: Sequence[Account]) -> None:
        self.accounts = list(accounts)


class InMemoryProxyRepository:
    def __init__(self, text: str = "") -> None:
        self.text = text

    def load_text(self) -> str:
        return self.text

    def load(self) -> ProxyPool:
        return ProxyPool.from_text(self.text)

    def save_text(self, text: str) -> None:
        self.text = text


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def connection_factory(scheduler: ManualScheduler) -> FakeConnectionFactory:
    return FakeConnectionFactory(scheduler)


@pytest.fixture
def event_log() -> InMemoryEventLogRepository:
    return InMemoryEventLogRepository()


@pytest.fixture
def bus(event_log: InMemoryEventLogRepository) -> EventBus:
    return EventBus(event_log)


@pytest.fixture
def subscriber(bus: EventBus) -> RecordingSubscriber:
    recorder = RecordingSubscriber()
    bus.subscribe(recorder)
    return recorder


@pytest.fixture
def server_repo() -> InMemoryServerProfileRepository:
    return InMemoryServerProfileRepository()


@pytest.fixture
def settings_repo() -> InMemorySettingsRepository:
    return InMemorySettingsRepository()


@pytest.fixture
def account_repo() -> InMemoryAccountRepository:
    return InMemoryAccountRepository(
        [
            Account("alpha", auth_mode=AuthMode.OFFLINE),
            Account("beta", auth_mode=AuthMode.OFFLINE),
            Account("gamma", password="secret", auth_mode=AuthMode.MICROSOFT),
        ]
    )


@pytest.fixture
def proxy_repo() -> InMemoryProxyRepository:
    return InMemoryProxyRepository()


@pytest.fixture
def registry(
    server_repo: InMemoryServerProfileRepository,
    settings_repo: InMemorySettingsRepository,
    account_repo: InMemoryAccountRepository,
    proxy_repo: InMemoryProxyRepository,
    connection_factory: FakeConnectionFactory,
    scheduler: ManualScheduler,
    bus: EventBus,
) -> SessionRegistry:
    return SessionRegistry(
        server_repository=server_repo,
        settings_repository=settings_repo,
        account_repository=account_repo,
        proxy_repository=proxy_repo,
        connection_factory=connection_factory,
        scheduler=scheduler,
        bus=bus,
        connect_timeout_seconds=45.0,
        rng=random.Random(7),
    )


@pytest.fixture
def finished() -> list[tuple[BotSession, bool]]:
    return []


@pytest.fixture
def make_session(
    connection_factory: FakeConnectionFactory,
    scheduler: ManualScheduler,
    bus: EventBus,
    finished: list[tuple[BotSession, bool]],
) -> Callable[..., BotSession]:
    """Build a standalone session whose exits are recorded in ``finished``."""

    def build(
        behavior: BehaviorSettings | None = None,
        *,
        account: Account | None = None,
        server: ServerProfile | None = None,
        proxies: ProxyPool | None = None,
    ) -> BotSession:
        return BotSession(
            account or Account("alpha", auth_mode=AuthMode.OFFLINE),
            server or ServerProfile(host="play.example.net", login_delay_seconds=5),
            behavior or BehaviorSettings(),
            proxies or ProxyPool(),
            connection_factory=connection_factory,
            scheduler=scheduler,
            bus=bus,
            on_finished=lambda session, reconnect: finished.append((session, reconnect)),
            rng=random.Random(3),
        )

    return build
