"""Tests for the session state machine, error taxonomy and action plans."""
from __future__ import annotations

import math
import random

import pytest

from afkconsole.domain.models.behavior_settings import AntiIdleSettings, ChatPing, IdleActions
from afkconsole.domain.models.session_state import SessionSignal, SessionState, next_state
from afkconsole.domain.services.action_planner import (
    ActionKind,
    plan_anti_idle_tick,
    plan_message_burst,
    plan_pulse,
    random_look,
)
from afkconsole.domain.services.error_classifier import (
    ErrorKind,
    classify_error,
    is_protocol_noise,
)


@pytest.mark.parametrize(
    ("state", "signal", "expected"),
    [
        (SessionState.CONNECTING, SessionSignal.LOGIN, SessionState.CONNECTED),
        (SessionState.CONNECTED, SessionSignal.SPAWN, SessionState.SPAWNED),
        (SessionState.SPAWNED, SessionSignal.SPAWN, SessionState.SPAWNED),
        (SessionState.CONNECTING, SessionSignal.ABORT, SessionState.ENDED),
        (SessionState.SPAWNED, SessionSignal.END, SessionState.ENDED),
        (SessionState.CONNECTED, SessionSignal.CLOSE, SessionState.ENDED),
        (SessionState.CONNECTED, SessionSignal.LOGIN, None),
        (SessionState.SPAWNED, SessionSignal.ABORT, SessionState.ENDED),
        (SessionState.ENDED, SessionSignal.ABORT, None),
        (SessionState.ENDED, SessionSignal.END, None),
        (SessionState.ENDED, SessionSignal.SPAWN, None),
    ],
)
def test_session_transitions(state, signal, expected) -> None:
    """Only listed transitions are valid; ``ENDED`` is terminal."""

    assert next_state(state, signal) is expected


def test_active_states() -> None:
    """Commands are accepted only once logged in."""

    assert [state for state in SessionState if state.is_active] == [
        SessionState.CONNECTED,
        SessionState.SPAWNED,
    ]


@pytest.mark.parametrize(
    "message",
    [
        "PartialReadError: Read error for undefined : Unexpected buffer end",
        "Chunk size is 120 but only 64 was read ; partial packet",
        "Deserialization error for play.toClient : 0x38",
    ],
)
def test_protocol_noise_is_ignorable(message) -> None:
    """Known parser warnings are classified as ignorable."""

    assert is_protocol_noise(message)
    assert classify_error(message).kind is ErrorKind.IGNORABLE


def test_auth_challenge_without_code_uses_placeholder() -> None:
    """A device login prompt without a code still becomes a challenge."""

    result = classify_error("Please visit https://www.microsoft.com/link to sign in")

    assert result.kind is ErrorKind.AUTH_CHALLENGE
    assert result.auth_code == "N/A"


def test_timeouts_and_generic_errors() -> None:
    """Timeouts are recognized; everything else is generic."""

    assert classify_error("read ETIMEDOUT").kind is ErrorKind.TIMEOUT
    assert classify_error("Client timed out after 30000 milliseconds").kind is ErrorKind.TIMEOUT
    generic = classify_error("Failed to verify username!")
    assert generic.kind is ErrorKind.GENERIC
    assert generic.message == "Failed to verify username!"
    assert classify_error(None).message == "Unknown error"


def test_message_burst_is_compact_and_trimmed() -> None:
    """Blank messages are skipped without leaving a gap in the stagger."""

    plan = plan_message_burst([" /login pw ", "", "  ", "/home"], delay_seconds=2)

    assert [action.args for action in plan] == [("/login pw",), ("/home",)]
    assert [action.offset for action in plan] == pytest.approx([2.0, 2.3])
    assert all(action.kind is ActionKind.CHAT for action in plan)
    assert plan_message_burst([], 5) == []


def test_pulse_releases_after_half_a_second() -> None:
    """A pulse presses then releases the same control."""

    press, release = plan_pulse("jump", offset=1.0)

    assert press.args == ("jump", True)
    assert release.args == ("jump", False)
    assert release.offset - press.offset == pytest.approx(0.5)


def test_random_look_stays_within_bounds() -> None:
    """Yaw covers a full turn; pitch stays within a quarter turn of level."""

    rng = random.Random(11)
    for _ in range(200):
        yaw, pitch = random_look(rng)
        assert 0 <= yaw < math.tau
        assert -math.pi / 2 <= pitch <= math.pi / 2


def test_anti_idle_tick_plan_follows_enabled_actions() -> None:
    """Each enabled micro-action appears once, ordered by offset."""

    settings = AntiIdleSettings(
        actions=IdleActions(forward=True, head=False, arm=True, jump=False),
        chat_ping=ChatPing(enabled=True, message=" /ping "),
    )

    plan = plan_anti_idle_tick(settings, random.Random(2))

    assert [(action.kind, action.args) for action in plan] == [
        (ActionKind.CONTROL, ("forward", True)),
        (ActionKind.CONTROL, ("forward", False)),
        (ActionKind.SWING, ()),
        (ActionKind.CHAT, ("/ping",)),
    ]
    offsets = [action.offset for action in plan]
    assert offsets == sorted(offsets)


def test_anti_idle_tick_without_actions_is_empty() -> None:
    """Disabling every action leaves nothing to do."""

    settings = AntiIdleSettings(actions=IdleActions(forward=False, head=False, arm=False, jump=False))

    assert plan_anti_idle_tick(settings, random.Random(0)) == []
