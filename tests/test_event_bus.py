"""Tests for event broadcasting, the rolling log and client resync."""
from __future__ import annotations

from afkconsole.application.event_bus import RESTART_MESSAGE, EventBus
from afkconsole.domain.models.events import (
    ChatEvent,
    HealthEvent,
    SessionStatus,
    StatusEvent,
)

from conftest import InMemoryEventLogRepository, RecordingSubscriber


class _BrokenSubscriber:
    """Subscriber whose transport is gone."""

    def send(self, event, payload) -> None:
        raise ConnectionResetError("client went away")


def test_publish_logs_and_broadcasts_with_new_log(bus, event_log, subscriber) -> None:
    """Every event is appended to the log and pushed together with its entry."""

    bus.publish(StatusEvent("alpha", SessionStatus.CONNECTING, "Connecting..."))

    assert [name for name, _ in subscriber.frames] == ["bot-status", "new-log"]
    entry = event_log.entries[-1]
    assert entry["type"] == "bot-status"
    assert entry["botName"] == "alpha"
    assert entry["timestamp"].endswith("Z")
    assert subscriber.frames[1][1] == entry


def test_failing_subscriber_is_dropped(bus, subscriber) -> None:
    """A subscriber that cannot be written to should not break the broadcast."""

    bus.subscribe(_BrokenSubscriber())
    assert bus.subscriber_count == 2

    bus.publish(ChatEvent("alpha", "steve", "hi"))

    assert bus.subscriber_count == 1
    assert subscriber.payloads("bot-chat") == [{"botName": "alpha", "username": "steve", "message": "hi"}]


def test_resync_replays_statuses_telemetry_and_recent_chat(bus) -> None:
    """A resync should deliver the full known state to one subscriber only."""

    other = RecordingSubscriber()
    bus.subscribe(other)
    bus.publish(StatusEvent("alpha", SessionStatus.SPAWNED, "Spawned"))
    bus.publish(StatusEvent("beta", SessionStatus.KICKED, "Kicked: spam"))
    bus.publish(HealthEvent("alpha", 19.5, 20.0, 5.0))
    bus.publish(ChatEvent("alpha", "steve", "first"))
    bus.publish(ChatEvent("alpha", "Server", "second"))
    other.clear()
    requester = RecordingSubscriber()

    bus.resync(requester)

    assert [name for name, _ in requester.frames] == [
        "bot-status",
        "bot-status",
        "bot-health",
        "bot-chat",
        "bot-chat",
    ]
    assert requester.statuses() == ["spawned", "kicked"]
    assert requester.payloads("bot-chat") == [
        {"botName": "alpha", "username": "steve", "message": "first"},
        {"botName": "alpha", "username": "Server", "message": "second"},
    ]
    assert other.frames == []


def test_resync_limits_chat_history() -> None:
    """Only the most recent chat lines are replayed."""

    bus = EventBus(InMemoryEventLogRepository(), resync_chat_limit=2)
    for index in range(5):
        bus.publish(ChatEvent("alpha", "steve", f"line {index}"))
    requester = RecordingSubscriber()

    bus.resync(requester)

    assert [payload["message"] for payload in requester.payloads("bot-chat")] == ["line 3", "line 4"]


def test_disconnect_clears_telemetry(bus) -> None:
    """Telemetry of an account is forgotten once it disconnects."""

    bus.publish(HealthEvent("alpha", 10.0, 10.0, 0.0))
    assert len(bus.telemetry("alpha")) == 1

    bus.publish(StatusEvent("alpha", SessionStatus.DISCONNECTED, "Disconnected"))

    assert bus.telemetry("alpha") == []
    assert bus.last_status("alpha").status is SessionStatus.DISCONNECTED


def test_restore_from_log_marks_live_statuses_disconnected() -> None:
    """After a restart no session is live, whatever the log says."""

    log = InMemoryEventLogRepository(
        entries=[
            {"type": "bot-status", "botName": "alpha", "status": "spawned", "message": "Spawned",
             "timestamp": "2024-05-01T10:00:00.000Z"},
            {"type": "bot-status", "botName": "beta", "status": "kicked", "message": "Kicked: afk",
             "timestamp": "2024-05-01T10:01:00.000Z"},
            {"type": "bot-chat", "botName": "alpha", "username": "steve", "message": "hi",
             "timestamp": "2024-05-01T10:02:00.000Z"},
            {"type": "bot-status", "botName": "gamma", "status": "bogus", "message": "?"},
        ]
    )
    bus = EventBus(log)

    bus.restore_from_log()

    statuses = bus.statuses()
    assert set(statuses) == {"alpha", "beta"}
    assert statuses["alpha"].status is SessionStatus.DISCONNECTED
    assert statuses["alpha"].message == RESTART_MESSAGE
    assert statuses["beta"].status is SessionStatus.KICKED


def test_log_append_failure_does_not_stop_broadcast(subscriber) -> None:
    """A full disk must not silence the push channel."""

    class _FailingLog(InMemoryEventLogRepository):
        def append(self, entry) -> None:
            raise OSError("No space left on device")

    bus = EventBus(_FailingLog())
    bus.subscribe(subscriber)

    bus.publish(ChatEvent("alpha", "steve", "hi"))

    assert [name for name, _ in subscriber.frames] == ["bot-chat", "new-log"]
