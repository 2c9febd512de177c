"""Process-wide filter for uncaught exceptions."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

from afkconsole.domain.services.error_classifier import is_protocol_noise

logger = logging.getLogger(__name__)


def _describe(context: dict[str, Any]) -> str:
    exception = context.get("exception")
    if exception is not None:
        return f"{exception.__class__.__name__}: {exception}"
    return str(context.get("message") or "")


def handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Drop protocol noise; log everything else without stopping the loop."""

    description = _describe(context)
    if is_protocol_noise(description):
        logger.debug("Suppressed protocol noise: %s", description)
        return
    exception = context.get("exception")
    logger.error(
        "Unhandled error on the event loop: %s",
        context.get("message") or description,
        exc_info=(type(exception), exception, exception.__traceback__) if exception else None,
    )


def handle_thread_exception(args: threading.ExceptHookArgs) -> None:
    """Apply the same filter to exceptions escaping worker threads."""

    description = f"{args.exc_type.__name__}: {args.exc_value}"
    if is_protocol_noise(description):
        logger.debug("Suppressed protocol noise in thread: %s", description)
        return
    thread_name = args.thread.name if args.thread is not None else "unknown"
    logger.error(
        "Unhandled error in thread %s",
        thread_name,
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )


def install_exception_filter(loop: asyncio.AbstractEventLoop) -> None:
    """Route uncaught loop and thread exceptions through the noise filter."""

    loop.set_exception_handler(handle_loop_exception)
    threading.excepthook = handle_thread_exception
