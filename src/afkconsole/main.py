"""Application entry point defining the HTTP API and the Socket.IO push channel."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, TypeVar

import socketio
from fastapi import APIRouter, Body, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from afkconsole.application.command_gateway import CommandGateway
from afkconsole.application.event_bus import EventBus
from afkconsole.application.manage_configuration import (
    JOIN_MESSAGES,
    WORLD_CHANGE_MESSAGES,
    RetrieveAccountsUseCase,
    RetrieveLogsUseCase,
    RetrieveProxiesUseCase,
    RetrieveServerProfileUseCase,
    RetrieveSettingsUseCase,
    RetrieveVersionUseCase,
    StoreAccountsUseCase,
    StoreProxiesUseCase,
    StoreServerProfileUseCase,
    StoreSettingsUseCase,
    UpdateAntiIdleUseCase,
    UpdateAutoReconnectUseCase,
    UpdateMessagePolicyUseCase,
)
from afkconsole.application.scheduling import Scheduler
from afkconsole.application.session_registry import SessionRegistry
from afkconsole.config.logging_config import init_logging
from afkconsole.config.settings import Settings, get_settings
from afkconsole.domain.gateways.game_connection import ConnectionFactory
from afkconsole.domain.repositories.account_repository import AccountRepository
from afkconsole.domain.repositories.event_log_repository import EventLogRepository
from afkconsole.domain.repositories.proxy_repository import ProxyRepository
from afkconsole.domain.repositories.server_profile_repository import ServerProfileRepository
from afkconsole.domain.repositories.settings_repository import SettingsRepository
from afkconsole.domain.repositories.version_repository import VersionRepository
from afkconsole.infrastructure.connections.mineflayer_connection import (
    MineflayerConnectionFactory,
)
from afkconsole.infrastructure.push.socketio_channel import PushChannel, create_socketio_server
from afkconsole.infrastructure.repositories.json_account_repository import JsonAccountRepository
from afkconsole.infrastructure.repositories.json_event_log_repository import (
    JsonEventLogRepository,
)
from afkconsole.infrastructure.repositories.json_server_profile_repository import (
    JsonServerProfileRepository,
)
from afkconsole.infrastructure.repositories.json_settings_repository import (
    JsonSettingsRepository,
)
from afkconsole.infrastructure.repositories.json_version_repository import (
    JsonVersionRepository,
)
from afkconsole.infrastructure.repositories.text_proxy_repository import TextProxyRepository
from afkconsole.infrastructure.runtime.exception_filter import install_exception_filter
from afkconsole.infrastructure.scheduling.asyncio_scheduler import AsyncioScheduler

logger = logging.getLogger(__name__)

SUCCESS = {"success": True}


def create_app(
    settings: Settings | None = None,
    server_repo: ServerProfileRepository | None = None,
    settings_repo: SettingsRepository | None = None,
    account_repo: AccountRepository | None = None,
    proxy_repo: ProxyRepository | None = None,
    event_log_repo: EventLogRepository | None = None,
    version_repo: VersionRepository | None = None,
    connection_factory: ConnectionFactory | None = None,
    scheduler: Scheduler | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance."""

    config = settings or get_settings()
    init_logging(config.log_dir, config.log_level)

    server_repository = server_repo or JsonServerProfileRepository(config.info_path)
    settings_repository = settings_repo or JsonSettingsRepository(config.settings_path)
    account_repository = account_repo or JsonAccountRepository(config.bots_path)
    proxy_repository = proxy_repo or TextProxyRepository(config.proxies_path)
    event_log_repository = (
        event_log_repo
        if event_log_repo is not None
        else JsonEventLogRepository(config.logs_path, config.event_log_limit)
    )
    version_repository = version_repo or JsonVersionRepository(
        config.version_path, config.app_version
    )

    factory = connection_factory or MineflayerConnectionFactory()
    bus = EventBus(event_log_repository, resync_chat_limit=config.resync_chat_limit)
    bus.restore_from_log()
    registry = SessionRegistry(
        server_repository=server_repository,
        settings_repository=settings_repository,
        account_repository=account_repository,
        proxy_repository=proxy_repository,
        connection_factory=factory,
        scheduler=scheduler or AsyncioScheduler(),
        bus=bus,
        connect_timeout_seconds=config.connect_timeout_seconds,
        connect_all_stagger_seconds=config.connect_all_stagger_seconds,
    )
    gateway = CommandGateway(registry, bus)
    sio = create_socketio_server(config.allowed_origins)
    push_channel = PushChannel(sio, bus, gateway)

    server_retriever = RetrieveServerProfileUseCase(server_repository)
    server_store = StoreServerProfileUseCase(server_repository)
    settings_retriever = RetrieveSettingsUseCase(settings_repository)
    settings_store = StoreSettingsUseCase(settings_repository)
    anti_idle_updater = UpdateAntiIdleUseCase(settings_repository)
    join_messages_updater = UpdateMessagePolicyUseCase(settings_repository, JOIN_MESSAGES)
    world_messages_updater = UpdateMessagePolicyUseCase(
        settings_repository, WORLD_CHANGE_MESSAGES
    )
    auto_reconnect_updater = UpdateAutoReconnectUseCase(settings_repository)
    accounts_retriever = RetrieveAccountsUseCase(account_repository)
    accounts_store = StoreAccountsUseCase(account_repository)
    proxies_retriever = RetrieveProxiesUseCase(proxy_repository)
    proxies_store = StoreProxiesUseCase(proxy_repository)
    logs_retriever = RetrieveLogsUseCase(event_log_repository)
    version_retriever = RetrieveVersionUseCase(version_repository)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        install_exception_filter(asyncio.get_running_loop())
        try:
            await asyncio.to_thread(factory.warm_up)
        except Exception:
            logger.exception("Could not prepare the game connection library")
        logger.info("AFK console backend ready on port %s", config.port)
        try:
            yield
        finally:
            registry.shutdown()

    app = FastAPI(title="AFK Console Backend", version=config.app_version, lifespan=lifespan)
    app.state.registry = registry
    app.state.bus = bus
    app.state.gateway = gateway
    app.state.sio = sio
    app.state.push_channel = push_channel

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allowed_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", status_code=status.HTTP_200_OK)
    async def get_root() -> dict[str, str]:
        """Return a simple heartbeat response for uptime monitoring."""

        return {"message": "AFK CONSOLE BACKEND RUNNING"}

    api_router = APIRouter(prefix=config.api_prefix)

    @api_router.get("/status", status_code=status.HTTP_200_OK)
    async def get_status() -> dict:
        """Return the operational status, version and live bot names."""

        return {
            "status": "ok",
            "version": config.app_version,
            "activeBots": registry.account_ids(),
        }

    @api_router.get("/info", status_code=status.HTTP_200_OK)
    async def get_server_info() -> dict:
        """Retrieve the server profile."""

        return server_retriever.execute().to_dict()

    @api_router.post("/info", status_code=status.HTTP_200_OK)
    async def save_server_info(payload: dict[str, Any] = Body(...)) -> dict:
        """Persist the provided server profile."""

        _execute_processor(server_store.execute, payload)
        return SUCCESS

    @api_router.get("/settings", status_code=status.HTTP_200_OK)
    async def get_settings_document() -> dict:
        """Retrieve the migrated behavior settings."""

        return settings_retriever.execute().to_dict()

    @api_router.post("/settings", status_code=status.HTTP_200_OK)
    async def save_settings_document(payload: dict[str, Any] = Body(...)) -> dict:
        """Persist the provided behavior settings."""

        _execute_processor(settings_store.execute, payload)
        return SUCCESS

    @api_router.get("/bots", status_code=status.HTTP_200_OK)
    async def get_bots() -> list:
        """Retrieve the ordered account list."""

        return [account.to_dict() for account in accounts_retriever.execute()]

    @api_router.post("/bots", status_code=status.HTTP_200_OK)
    async def save_bots(payload: list[Any] = Body(...)) -> dict:
        """Replace the account list."""

        _execute_processor(accounts_store.execute, payload)
        return SUCCESS

    @api_router.get("/proxies", status_code=status.HTTP_200_OK, response_class=PlainTextResponse)
    async def get_proxies() -> str:
        """Retrieve the raw newline-delimited proxy list."""

        return proxies_retriever.execute()

    @api_router.post("/proxies", status_code=status.HTTP_200_OK)
    async def save_proxies(payload: dict[str, Any] = Body(...)) -> dict:
        """Replace the proxy list."""

        _execute_processor(proxies_store.execute, payload)
        return SUCCESS

    @api_router.get("/version", status_code=status.HTTP_200_OK)
    async def get_version() -> dict:
        """Return the version marker."""

        return version_retriever.execute()

    @api_router.get("/logs", status_code=status.HTTP_200_OK)
    async def get_logs() -> list:
        """Return the retained rolling log, oldest first."""

        return logs_retriever.execute()

    @api_router.get("/anti-afk-config", status_code=status.HTTP_200_OK)
    async def get_anti_afk_config() -> dict:
        """Return the anti-idle part of the settings."""

        anti_idle = settings_retriever.execute().anti_idle
        return {
            "interval": anti_idle.interval_minutes,
            "physical": anti_idle.actions.to_dict(),
            "chat": anti_idle.chat_ping.to_dict(),
        }

    @api_router.post("/anti-afk-config", status_code=status.HTTP_200_OK)
    async def save_anti_afk_config(payload: dict[str, Any] = Body(...)) -> dict:
        """Update the anti-idle interval and actions."""

        _execute_processor(anti_idle_updater.execute, payload)
        return SUCCESS

    @api_router.get("/join-messages-config", status_code=status.HTTP_200_OK)
    async def get_join_messages_config() -> dict:
        """Return the join message delay and list."""

        policy = join_messages_updater.current()
        return {"delay": policy.delay_seconds, "messages": list(policy.messages)}

    @api_router.post("/join-messages-config", status_code=status.HTTP_200_OK)
    async def save_join_messages_config(payload: dict[str, Any] = Body(...)) -> dict:
        """Update the join message delay and list."""

        _execute_processor(join_messages_updater.execute, payload)
        return SUCCESS

    @api_router.get("/world-change-messages-config", status_code=status.HTTP_200_OK)
    async def get_world_change_messages_config() -> dict:
        """Return the world-change message delay and list."""

        policy = world_messages_updater.current()
        return {"delay": policy.delay_seconds, "messages": list(policy.messages)}

    @api_router.post("/world-change-messages-config", status_code=status.HTTP_200_OK)
    async def save_world_change_messages_config(payload: dict[str, Any] = Body(...)) -> dict:
        """Update the world-change message delay and list."""

        _execute_processor(world_messages_updater.execute, payload)
        return SUCCESS

    @api_router.get("/autoreconnect-config", status_code=status.HTTP_200_OK)
    async def get_autoreconnect_config() -> dict:
        """Return the auto-reconnect delay."""

        return {"delay": settings_retriever.execute().auto_reconnect.delay_seconds}

    @api_router.post("/autoreconnect-config", status_code=status.HTTP_200_OK)
    async def save_autoreconnect_config(payload: dict[str, Any] = Body(...)) -> dict:
        """Update the auto-reconnect delay."""

        _execute_processor(auto_reconnect_updater.execute, payload)
        return SUCCESS

    app.include_router(api_router)

    return app


def create_asgi_app(settings: Settings | None = None, **overrides: Any) -> socketio.ASGIApp:
    """Wrap the FastAPI application with the Socket.IO endpoint at ``/socket.io``."""

    app = create_app(settings, **overrides)
    return socketio.ASGIApp(app.state.sio, other_asgi_app=app)


_PayloadT = TypeVar("_PayloadT")
_ResultT = TypeVar("_ResultT")


def _execute_processor(processor: Callable[[_PayloadT], _ResultT], payload: _PayloadT) -> _ResultT:
    """Execute a processor function converting domain ``ValueError`` to HTTP errors."""

    try:
        return processor(payload)
    except ValueError as processing_error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(processing_error),
        ) from processing_error
