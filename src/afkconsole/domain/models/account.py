"""Domain model describing a bot account managed by the console."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping


class AuthMode(str, Enum):
    """Authentication flavors accepted by the game server."""

    MICROSOFT = "microsoft"
    MOJANG = "mojang"
    OFFLINE = "offline"


DEFAULT_AUTH_MODE = AuthMode.MICROSOFT


@dataclass(frozen=True)
class Account:
    """A single account the console can connect with."""

    username: str
    password: str | None = None
    auth_mode: AuthMode = DEFAULT_AUTH_MODE

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready representation stored in the account list."""

        data: dict[str, Any] = {"username": self.username, "auth": self.auth_mode.value}
        if self.password:
            data["password"] = self.password
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Account":
        """Create an account from its stored representation."""

        if not isinstance(data, Mapping):
            raise ValueError("Account data must be a mapping.")

        username = data.get("username")
        if not isinstance(username, str) or not username.strip():
            raise ValueError("Account username must be a non-empty string.")

        raw_auth = data.get("auth") or DEFAULT_AUTH_MODE.value
        try:
            auth_mode = AuthMode(str(raw_auth).lower())
        except ValueError:
            raise ValueError(f"Unsupported authentication mode: {raw_auth!r}.") from None

        password = data.get("password")
        if password is not None and not isinstance(password, str):
            raise ValueError("Account password must be a string.")

        return cls(username=username.strip(), password=password or None, auth_mode=auth_mode)


def migrate_account_documents(
    documents: Iterable[Mapping[str, Any]],
) -> tuple[list[dict[str, Any]], bool]:
    """Fill a missing ``auth`` field with the default mode.

    Returns the migrated documents and whether anything changed.
    """

    migrated: list[dict[str, Any]] = []
    changed = False
    for document in documents:
        entry = dict(document)
        if not entry.get("auth"):
            entry["auth"] = DEFAULT_AUTH_MODE.value
            changed = True
        migrated.append(entry)
    return migrated, changed


def find_account(accounts: Iterable[Account], username: str) -> Account | None:
    """Return the account registered under ``username`` when present."""

    for account in accounts:
        if account.username == username:
            return account
    return None
