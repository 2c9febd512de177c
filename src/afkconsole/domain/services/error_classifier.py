"""Classification of error messages raised by the game connection."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    IGNORABLE = "ignorable"
    AUTH_CHALLENGE = "auth_challenge"
    TIMEOUT = "timeout"
    GENERIC = "generic"


# Benign parser warnings emitted by the protocol layer on partial packets.
_IGNORABLE_FRAGMENTS = (
    "PartialReadError",
    "Unexpected buffer end",
    "Read error for undefined",
    "array size is abnormally large",
    "Chunk size is",
    "Deserialization error",
    "Parse error for",
)

_TIMEOUT_FRAGMENTS = (
    "ETIMEDOUT",
    "timed out",
    "Connection timeout",
    "connect timeout",
)

_AUTH_LINK_FRAGMENT = "microsoft.com/link"
_AUTH_CODE_PATTERN = re.compile(r"use the code ([A-Z0-9]+)")
UNKNOWN_AUTH_CODE = "N/A"


@dataclass(frozen=True)
class ErrorClassification:
    kind: ErrorKind
    message: str
    auth_code: str | None = None


def is_protocol_noise(message: str | None) -> bool:
    """Return ``True`` when ``message`` is known benign protocol noise."""

    if not message:
        return False
    return any(fragment in message for fragment in _IGNORABLE_FRAGMENTS)


def classify_error(message: str | None) -> ErrorClassification:
    """Sort an error message into the console's error taxonomy."""

    text = message or ""
    if is_protocol_noise(text):
        return ErrorClassification(ErrorKind.IGNORABLE, text)

    if _AUTH_LINK_FRAGMENT in text:
        match = _AUTH_CODE_PATTERN.search(text)
        code = match.group(1) if match else UNKNOWN_AUTH_CODE
        return ErrorClassification(ErrorKind.AUTH_CHALLENGE, text, auth_code=code)

    lowered = text.lower()
    if any(fragment.lower() in lowered for fragment in _TIMEOUT_FRAGMENTS):
        return ErrorClassification(ErrorKind.TIMEOUT, text)

    return ErrorClassification(ErrorKind.GENERIC, text or "Unknown error")
