"""Use cases exposing the config store to the HTTP surface."""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Mapping

from afkconsole.domain.models.account import Account
from afkconsole.domain.models.behavior_settings import (
    AutoReconnectSettings,
    BehaviorSettings,
    ChatPing,
    IdleActions,
    MessagePolicy,
    clean_messages,
)
from afkconsole.domain.models.proxy import ProxyPool
from afkconsole.domain.models.server_profile import ServerProfile
from afkconsole.domain.repositories.account_repository import AccountRepository
from afkconsole.domain.repositories.event_log_repository import EventLogRepository
from afkconsole.domain.repositories.proxy_repository import ProxyRepository
from afkconsole.domain.repositories.server_profile_repository import ServerProfileRepository
from afkconsole.domain.repositories.settings_repository import SettingsRepository
from afkconsole.domain.repositories.version_repository import VersionRepository

JOIN_MESSAGES = "join"
WORLD_CHANGE_MESSAGES = "world-change"


class RetrieveServerProfileUseCase:
    """Return the stored server profile."""

    def __init__(self, repository: ServerProfileRepository) -> None:
        self._repository = repository

    def execute(self) -> ServerProfile:
        return self._repository.load()


class StoreServerProfileUseCase:
    """Validate and persist a server profile payload."""

    def __init__(self, repository: ServerProfileRepository) -> None:
        self._repository = repository

    def execute(self, data: Mapping[str, Any]) -> ServerProfile:
        profile = ServerProfile.from_dict(data)
        self._repository.save(profile)
        return profile


class RetrieveSettingsUseCase:
    """Return the migrated behavior settings."""

    def __init__(self, repository: SettingsRepository) -> None:
        self._repository = repository

    def execute(self) -> BehaviorSettings:
        return self._repository.load()


class StoreSettingsUseCase:
    """Validate and persist a full settings document."""

    def __init__(self, repository: SettingsRepository) -> None:
        self._repository = repository

    def execute(self, data: Mapping[str, Any]) -> BehaviorSettings:
        settings = BehaviorSettings.from_dict(data)
        self._repository.save(settings)
        return settings


class UpdateAntiIdleUseCase:
    """Replace the anti-idle interval, physical actions and chat ping."""

    def __init__(self, repository: SettingsRepository) -> None:
        self._repository = repository

    def execute(self, data: Mapping[str, Any]) -> BehaviorSettings:
        if not isinstance(data, Mapping):
            raise ValueError("Anti-AFK configuration must be a mapping.")
        try:
            interval = float(data.get("interval") or 1)
        except (TypeError, ValueError):
            raise ValueError("Anti-AFK interval must be a number of minutes.") from None
        if interval <= 0:
            raise ValueError("Anti-AFK interval must be positive.")

        settings = self._repository.load()
        anti_idle = replace(
            settings.anti_idle,
            interval_minutes=interval,
            actions=IdleActions.from_dict(data.get("physical")),
            chat_ping=ChatPing.from_dict(data.get("chat")),
        )
        updated = replace(settings, anti_idle=anti_idle)
        self._repository.save(updated)
        return updated


class UpdateMessagePolicyUseCase:
    """Replace the delay and message list of the join or world-change policy."""

    def __init__(self, repository: SettingsRepository, policy: str) -> None:
        if policy not in (JOIN_MESSAGES, WORLD_CHANGE_MESSAGES):
            raise ValueError(f"Unknown message policy {policy!r}.")
        self._repository = repository
        self._policy = policy

    def execute(self, data: Mapping[str, Any]) -> MessagePolicy:
        if not isinstance(data, Mapping):
            raise ValueError("Message configuration must be a mapping.")
        raw_messages = data.get("messages") or []
        if isinstance(raw_messages, str) or not isinstance(raw_messages, Iterable):
            raise ValueError("Messages must be provided as a list of strings.")
        try:
            delay = float(data.get("delay") or 0)
        except (TypeError, ValueError):
            raise ValueError("Message delay must be a number of seconds.") from None
        if delay < 0:
            raise ValueError("Message delay cannot be negative.")

        settings = self._repository.load()
        current = self._current(settings)
        policy = replace(
            current,
            delay_seconds=delay or current.delay_seconds,
            messages=clean_messages(raw_messages),
        )
        if self._policy == JOIN_MESSAGES:
            updated = replace(settings, join_messages=policy)
        else:
            updated = replace(settings, world_change_messages=policy)
        self._repository.save(updated)
        return policy

    def current(self) -> MessagePolicy:
        return self._current(self._repository.load())

    def _current(self, settings: BehaviorSettings) -> MessagePolicy:
        if self._policy == JOIN_MESSAGES:
            return settings.join_messages
        return settings.world_change_messages


class UpdateAutoReconnectUseCase:
    """Replace the auto-reconnect delay."""

    def __init__(self, repository: SettingsRepository) -> None:
        self._repository = repository

    def execute(self, data: Mapping[str, Any]) -> AutoReconnectSettings:
        if not isinstance(data, Mapping):
            raise ValueError("Auto reconnect configuration must be a mapping.")
        try:
            delay = float(data.get("delay"))
        except (TypeError, ValueError):
            raise ValueError("Auto reconnect delay must be a number of seconds.") from None
        if delay <= 0:
            raise ValueError("Auto reconnect delay must be positive.")

        settings = self._repository.load()
        auto_reconnect = replace(settings.auto_reconnect, delay_seconds=delay)
        self._repository.save(replace(settings, auto_reconnect=auto_reconnect))
        return auto_reconnect


class RetrieveAccountsUseCase:
    """Return the ordered account list."""

    def __init__(self, repository: AccountRepository) -> None:
        self._repository = repository

    def execute(self) -> list[Account]:
        return self._repository.load()


class StoreAccountsUseCase:
    """Validate and replace the account list, rejecting duplicate names."""

    def __init__(self, repository: AccountRepository) -> None:
        self._repository = repository

    def execute(self, data: Any) -> list[Account]:
        if isinstance(data, (str, bytes)) or not isinstance(data, Iterable):
            raise ValueError("Accounts must be provided as a list of objects.")
        accounts = [Account.from_dict(entry) for entry in data]
        seen: set[str] = set()
        for account in accounts:
            if account.username in seen:
                raise ValueError(f"Duplicate account username {account.username!r}.")
            seen.add(account.username)
        self._repository.save(accounts)
        return accounts


class RetrieveProxiesUseCase:
    """Return the raw proxy list."""

    def __init__(self, repository: ProxyRepository) -> None:
        self._repository = repository

    def execute(self) -> str:
        return self._repository.load_text()


class StoreProxiesUseCase:
    """Validate and replace the raw proxy list."""

    def __init__(self, repository: ProxyRepository) -> None:
        self._repository = repository

    def execute(self, data: Mapping[str, Any]) -> ProxyPool:
        if not isinstance(data, Mapping):
            raise ValueError("Proxy payload must be a mapping.")
        text = data.get("proxies") or ""
        if not isinstance(text, str):
            raise ValueError("Proxies must be newline-delimited text.")
        pool = ProxyPool.from_text(text, strict=True)
        self._repository.save_text(text)
        return pool


class RetrieveLogsUseCase:
    """Return the retained rolling log."""

    def __init__(self, repository: EventLogRepository) -> None:
        self._repository = repository

    def execute(self) -> list[dict[str, Any]]:
        return self._repository.load()


class RetrieveVersionUseCase:
    """Return the version marker."""

    def __init__(self, repository: VersionRepository) -> None:
        self._repository = repository

    def execute(self) -> dict[str, str]:
        return self._repository.load()
