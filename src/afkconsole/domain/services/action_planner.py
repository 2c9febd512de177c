"""Declarative plans of staggered bot actions.

A plan is a short list of ``PlannedAction`` entries, each carrying the
offset (seconds from the start of the plan) at which it must run. Sessions
hand the whole list to a single scheduling primitive, so cancelling a
plan is one operation regardless of how many steps it holds.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from afkconsole.domain.models.behavior_settings import AntiIdleSettings

MESSAGE_STAGGER_SECONDS = 0.3
PULSE_SECONDS = 0.5

# Offsets inside one anti-idle tick keep the micro-actions from colliding.
FORWARD_OFFSET = 0.0
JUMP_OFFSET = 0.6
LOOK_OFFSET = 1.2
SWING_OFFSET = 1.5
CHAT_PING_OFFSET = 2.0

MAX_LOOK_PITCH = math.pi / 2


class ActionKind(str, Enum):
    CONTROL = "control"
    LOOK = "look"
    SWING = "swing"
    CHAT = "chat"


@dataclass(frozen=True)
class PlannedAction:
    offset: float
    kind: ActionKind
    args: Tuple = ()


def plan_message_burst(
    messages: Iterable[str],
    delay_seconds: float,
    stagger_seconds: float = MESSAGE_STAGGER_SECONDS,
) -> List[PlannedAction]:
    """Send each non-blank message, trimmed, after ``delay_seconds``.

    Consecutive messages are ``stagger_seconds`` apart; blank entries are
    skipped without leaving a gap.
    """

    cleaned = [message.strip() for message in messages if message and message.strip()]
    return [
        PlannedAction(delay_seconds + index * stagger_seconds, ActionKind.CHAT, (message,))
        for index, message in enumerate(cleaned)
    ]


def plan_pulse(control: str, offset: float = 0.0, duration: float = PULSE_SECONDS) -> List[PlannedAction]:
    """Press ``control`` at ``offset`` and release it ``duration`` later."""

    return [
        PlannedAction(offset, ActionKind.CONTROL, (control, True)),
        PlannedAction(offset + duration, ActionKind.CONTROL, (control, False)),
    ]


def random_look(rng: random.Random) -> Tuple[float, float]:
    """Return a yaw over the full circle and a pitch centred on the horizon."""

    yaw = rng.random() * math.tau
    pitch = (rng.random() - 0.5) * 2 * MAX_LOOK_PITCH
    return yaw, pitch


def plan_anti_idle_tick(settings: AntiIdleSettings, rng: random.Random) -> List[PlannedAction]:
    """Return the micro-actions performed by a single anti-idle tick."""

    plan: List[PlannedAction] = []
    actions = settings.actions
    if actions.forward:
        plan.extend(plan_pulse("forward", FORWARD_OFFSET))
    if actions.jump:
        plan.extend(plan_pulse("jump", JUMP_OFFSET))
    if actions.head:
        plan.append(PlannedAction(LOOK_OFFSET, ActionKind.LOOK, random_look(rng)))
    if actions.arm:
        plan.append(PlannedAction(SWING_OFFSET, ActionKind.SWING))
    chat_ping = settings.chat_ping
    if chat_ping.enabled and chat_ping.message.strip():
        plan.append(PlannedAction(CHAT_PING_OFFSET, ActionKind.CHAT, (chat_ping.message.strip(),)))
    return sorted(plan, key=lambda action: action.offset)
