"""Domain models for the optional proxy egress pool."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyDescriptor:
    """A single ``host:port[:user:pass]`` proxy entry."""

    host: str
    port: int
    username: str | None = None
    password: str | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @classmethod
    def parse(cls, line: str) -> "ProxyDescriptor":
        """Parse one descriptor line, raising ``ValueError`` when malformed."""

        parts = line.strip().split(":")
        if len(parts) < 2 or not parts[0]:
            raise ValueError(f"Proxy entry {line.strip()!r} must look like host:port[:user:pass].")
        try:
            port = int(parts[1])
        except ValueError:
            raise ValueError(f"Proxy entry {line.strip()!r} has an invalid port.") from None

        username = parts[2] if len(parts) > 2 and parts[2] else None
        password = ":".join(parts[3:]) if len(parts) > 3 else None
        return cls(host=parts[0], port=port, username=username, password=password or None)


@dataclass(frozen=True)
class ProxyPool:
    """Proxies available for connection attempts."""

    proxies: List[ProxyDescriptor] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str | None, strict: bool = False) -> "ProxyPool":
        """Build the pool from newline-delimited text, ignoring blank lines.

        Malformed lines are skipped with a warning unless ``strict`` is set,
        in which case the first one raises ``ValueError``.
        """

        proxies: List[ProxyDescriptor] = []
        for number, line in enumerate((text or "").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                proxies.append(ProxyDescriptor.parse(line))
            except ValueError as error:
                if strict:
                    raise
                logger.warning("Skipping proxy line %d: %s", number, error)
        return cls(proxies=proxies)

    def __len__(self) -> int:
        return len(self.proxies)

    def choose(self, rng: random.Random | None = None) -> ProxyDescriptor | None:
        """Pick one proxy uniformly at random, or ``None`` for an empty pool."""

        if not self.proxies:
            return None
        return (rng or random).choice(self.proxies)
