"""Run the AFK console backend with ``python -m afkconsole``."""
from __future__ import annotations

import uvicorn

from afkconsole.config.settings import get_settings
from afkconsole.main import create_asgi_app


def main() -> None:
    """Start the API server using the environment configuration."""

    settings = get_settings()
    uvicorn.run(create_asgi_app(settings), host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
