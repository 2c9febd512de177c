"""HTTP route and push channel tests for the FastAPI application."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
import socketio
from fastapi import FastAPI
from fastapi.testclient import TestClient

from afkconsole.config.settings import Settings
from afkconsole.main import create_app, create_asgi_app

from conftest import EmitRecorder, FakeConnectionFactory, ManualScheduler


@pytest.fixture
def app_settings(tmp_path: Path) -> Settings:
    return Settings(data_dir=tmp_path / "data", log_dir=tmp_path / "logs")


@pytest.fixture
def app(app_settings: Settings, scheduler: ManualScheduler, connection_factory: FakeConnectionFactory) -> FastAPI:
    return create_app(app_settings, connection_factory=connection_factory, scheduler=scheduler)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def test_root_endpoint_returns_running_message(client: TestClient) -> None:
    """The root endpoint should return the expected heartbeat payload."""

    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "AFK CONSOLE BACKEND RUNNING"}


def test_status_endpoint_reports_version_and_bots(client: TestClient) -> None:
    """The status endpoint lists the live bots."""

    response = client.get("/api/status")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "1.0.0", "activeBots": []}


def test_server_info_round_trip(client: TestClient, app_settings: Settings) -> None:
    """Saving server info persists it to ``info.json``."""

    assert client.get("/api/info").json()["serverPort"] == 25565

    payload = {"serverIP": "mc.example.org", "serverPort": 25570, "version": "1.19.4", "loginDelay": 3}
    response = client.post("/api/info", json=payload)

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get("/api/info").json() == payload
    assert json.loads(app_settings.info_path.read_text(encoding="utf-8"))["serverIP"] == "mc.example.org"


def test_invalid_server_info_is_rejected(client: TestClient) -> None:
    """Out-of-range ports yield a validation error."""

    response = client.post("/api/info", json={"serverIP": "mc.example.org", "serverPort": 99999})

    assert response.status_code == 422


def test_settings_are_migrated_on_read(app_settings: Settings, scheduler, connection_factory) -> None:
    """Legacy settings files are upgraded the first time they are served."""

    app_settings.data_dir.mkdir(parents=True)
    app_settings.settings_path.write_text(
        json.dumps({"joinMessageText": "/login pw", "antiAFK": False}), encoding="utf-8"
    )
    client = TestClient(
        create_app(app_settings, connection_factory=connection_factory, scheduler=scheduler)
    )

    document = client.get("/api/settings").json()

    assert document["joinMessagesList"] == ["/login pw"]
    assert document["worldChangeMessagesList"] == ["/home"]
    assert document["antiAFK"] is False
    assert "joinMessageText" not in json.loads(app_settings.settings_path.read_text(encoding="utf-8"))


def test_settings_post_replaces_document(client: TestClient) -> None:
    """A posted settings document is stored as the new settings."""

    document = client.get("/api/settings").json()
    document["sneak"] = True
    document["autoReconnectDelay"] = 12

    assert client.post("/api/settings", json=document).json() == {"success": True}

    stored = client.get("/api/settings").json()
    assert stored["sneak"] is True
    assert stored["autoReconnectDelay"] == 12


def test_bots_round_trip_and_duplicate_rejection(client: TestClient) -> None:
    """Accounts keep their order and duplicate names are refused."""

    bots = [{"username": "alpha", "auth": "offline"}, {"username": "beta"}]

    assert client.post("/api/bots", json=bots).status_code == 200
    assert client.get("/api/bots").json() == [
        {"username": "alpha", "auth": "offline"},
        {"username": "beta", "auth": "microsoft"},
    ]

    duplicate = client.post("/api/bots", json=[{"username": "alpha"}, {"username": "alpha"}])

    assert duplicate.status_code == 422


def test_proxies_round_trip_and_validation(client: TestClient) -> None:
    """The proxy list is served as text and malformed entries are refused."""

    text = "10.0.0.1:8080\n10.0.0.2:3128:user:pass"

    assert client.post("/api/proxies", json={"proxies": text}).status_code == 200
    assert client.get("/api/proxies").text == text
    assert client.post("/api/proxies", json={"proxies": "broken"}).status_code == 422


def test_version_and_empty_logs(client: TestClient) -> None:
    """A fresh data directory has the default version and an empty log."""

    assert client.get("/api/version").json() == {"version": "1.0.0"}
    assert client.get("/api/logs").json() == []


def test_anti_afk_config(client: TestClient) -> None:
    """The anti-AFK sub-document can be read and replaced."""

    assert client.get("/api/anti-afk-config").json() == {
        "interval": 1,
        "physical": {"forward": True, "head": True, "arm": False, "jump": True},
        "chat": {"message": "/ping", "send": False},
    }

    payload = {
        "interval": 5,
        "physical": {"forward": False, "head": True, "arm": True, "jump": False},
        "chat": {"message": "/afk", "send": True},
    }
    assert client.post("/api/anti-afk-config", json=payload).json() == {"success": True}

    assert client.get("/api/anti-afk-config").json() == payload
    assert client.get("/api/settings").json()["antiAFKInterval"] == 5


def test_message_configs(client: TestClient) -> None:
    """Join and world-change messages are configured independently."""

    assert client.get("/api/world-change-messages-config").json() == {"delay": 5, "messages": ["/home"]}

    response = client.post(
        "/api/join-messages-config", json={"delay": 3, "messages": [" /login pw ", "", "  "]}
    )

    assert response.status_code == 200
    assert client.get("/api/join-messages-config").json() == {"delay": 3, "messages": ["/login pw"]}
    assert client.get("/api/world-change-messages-config").json()["messages"] == ["/home"]
    assert (
        client.post("/api/join-messages-config", json={"delay": 1, "messages": "not a list"}).status_code
        == 422
    )


def test_autoreconnect_config(client: TestClient) -> None:
    """The reconnect delay must be positive."""

    assert client.get("/api/autoreconnect-config").json() == {"delay": 4}
    assert client.post("/api/autoreconnect-config", json={"delay": 9}).status_code == 200
    assert client.get("/api/autoreconnect-config").json() == {"delay": 9}
    assert client.post("/api/autoreconnect-config", json={"delay": 0}).status_code == 422


def test_asgi_app_serves_socketio_next_to_the_api(
    app_settings: Settings, scheduler, connection_factory
) -> None:
    """The wrapped application answers both the API and the Socket.IO handshake."""

    asgi_app = create_asgi_app(
        app_settings, connection_factory=connection_factory, scheduler=scheduler
    )
    client = TestClient(asgi_app)

    assert isinstance(asgi_app, socketio.ASGIApp)
    assert client.get("/api/status").json()["status"] == "ok"

    handshake = client.get("/socket.io/", params={"EIO": "4", "transport": "polling"})

    assert handshake.status_code == 200
    assert handshake.text.startswith("0{")
    assert '"sid"' in handshake.text


def test_lifespan_warms_up_and_drains(app: FastAPI, connection_factory, scheduler) -> None:
    """Startup prepares the game library; shutdown closes every session."""

    with TestClient(app) as client:
        client.post("/api/bots", json=[{"username": "alpha", "auth": "offline"}])
        app.state.registry.connect("alpha")
        scheduler.advance(5)

        assert connection_factory.warm_ups == 1
        assert client.get("/api/status").json()["activeBots"] == ["alpha"]

    assert len(app.state.registry) == 0
    assert connection_factory.last.ended
    assert scheduler.pending() == []


def test_push_channel_reports_unknown_bot(app: FastAPI, monkeypatch) -> None:
    """Connecting an unknown bot over the push channel yields a bot error and a log entry."""

    recorder = EmitRecorder()
    monkeypatch.setattr(app.state.sio, "emit", recorder)
    channel = app.state.push_channel

    async def scenario() -> None:
        await channel.on_connect("sid-1", {})
        await channel.dispatch("sid-1", "connect-bot", {"botName": "ghost"})
        for _ in range(3):
            await asyncio.sleep(0)
        await channel.on_disconnect("sid-1")

    asyncio.run(scenario())
    logs = TestClient(app).get("/api/logs").json()

    assert recorder.events("sid-1")[0] == ("bot-error", {"botName": "ghost", "error": "Bot not found"})
    assert recorder.events("sid-1")[1][0] == "new-log"
    assert [entry["type"] for entry in logs] == ["bot-error"]


def test_restart_restores_statuses_as_disconnected(
    app_settings: Settings, scheduler, connection_factory, monkeypatch
) -> None:
    """Statuses from a previous run are replayed as disconnected."""

    app_settings.data_dir.mkdir(parents=True)
    app_settings.logs_path.write_text(
        json.dumps(
            [
                {
                    "type": "bot-status",
                    "botName": "alpha",
                    "status": "spawned",
                    "message": "Spawned",
                    "timestamp": "2024-05-01T10:00:00.000Z",
                }
            ]
        ),
        encoding="utf-8",
    )
    app = create_app(app_settings, connection_factory=connection_factory, scheduler=scheduler)
    recorder = EmitRecorder()
    monkeypatch.setattr(app.state.sio, "emit", recorder)
    channel = app.state.push_channel

    async def scenario() -> None:
        await channel.on_connect("sid-1", {})
        await channel.dispatch("sid-1", "request-sync", {})
        for _ in range(3):
            await asyncio.sleep(0)
        await channel.on_disconnect("sid-1")

    asyncio.run(scenario())

    assert recorder.events("sid-1") == [
        (
            "bot-status",
            {
                "botName": "alpha",
                "status": "disconnected",
                "message": "Disconnected: backend restarted",
            },
        )
    ]
