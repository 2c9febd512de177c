"""Lifecycle states of a bot session and the transitions between them."""
from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SPAWNED = "spawned"
    ENDED = "ended"

    @property
    def is_active(self) -> bool:
        """Return ``True`` once the account is logged in and not yet ended."""

        return self in (SessionState.CONNECTED, SessionState.SPAWNED)


class SessionSignal(str, Enum):
    """Low-level connection signals that drive lifecycle transitions."""

    LOGIN = "login"
    SPAWN = "spawn"
    END = "end"
    CLOSE = "close"
    # Timeouts and failures to open the connection.
    ABORT = "abort"


_TRANSITIONS: dict[tuple[SessionState, SessionSignal], SessionState] = {
    (SessionState.CONNECTING, SessionSignal.LOGIN): SessionState.CONNECTED,
    (SessionState.CONNECTED, SessionSignal.SPAWN): SessionState.SPAWNED,
    (SessionState.CONNECTING, SessionSignal.SPAWN): SessionState.SPAWNED,
    # Respawns and world changes re-emit the spawn signal.
    (SessionState.SPAWNED, SessionSignal.SPAWN): SessionState.SPAWNED,
}

for _state in (SessionState.CONNECTING, SessionState.CONNECTED, SessionState.SPAWNED):
    _TRANSITIONS[(_state, SessionSignal.END)] = SessionState.ENDED
    _TRANSITIONS[(_state, SessionSignal.CLOSE)] = SessionState.ENDED
    _TRANSITIONS[(_state, SessionSignal.ABORT)] = SessionState.ENDED


def next_state(state: SessionState, signal: SessionSignal) -> SessionState | None:
    """Return the state reached from ``state`` on ``signal``.

    ``None`` means the signal is not valid in ``state`` and must be ignored;
    ``ENDED`` is terminal, so every signal is ignored there.
    """

    return _TRANSITIONS.get((state, signal))
