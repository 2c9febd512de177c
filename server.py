"""ASGI entry point for process managers such as ``uvicorn server:app``."""
from __future__ import annotations

import sys
from pathlib import Path

import socketio


def _ensure_src_on_path() -> None:
    """Add the ``src`` directory to ``sys.path`` when executing from the repo root."""

    current = Path(__file__).resolve().parent
    for candidate in (current, *current.parents):
        src_path = candidate / "src"
        if src_path.exists():
            src_path_str = str(src_path)
            if src_path_str not in sys.path:
                sys.path.insert(0, src_path_str)
            break


_ensure_src_on_path()

from afkconsole.main import create_asgi_app  # noqa: E402 (requires sys.path update)


def get_app() -> socketio.ASGIApp:
    """Build the Socket.IO-wrapped application served by the ASGI server."""

    return create_asgi_app()


app = get_app()

__all__ = ["app", "get_app"]
