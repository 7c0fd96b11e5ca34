"""Handler scheduler — fires the handlers collected by one write.

Handlers run after the write has committed, in the order their edges were
marked. A failing handler never aborts the batch or the write: its exception
goes to the error sink and the next handler runs.

Error sink: by default errors are logged on the "proxystate.scheduler"
logger, which Python's last-resort handler prints to stderr when logging is
not configured. Call set_error_sink() once to route them elsewhere.
"""

from __future__ import annotations

import logging
from typing import Callable

from proxystate import _tracking
from proxystate._mutation import MutationContext
from proxystate.errors import ReentrantHandlerError

logger = logging.getLogger("proxystate.scheduler")

ErrorSink = Callable[[BaseException], None]

_error_sink: ErrorSink | None = None


def set_error_sink(sink: ErrorSink | None) -> None:
    """Route handler failures to sink(exc) instead of the logger.

    Pass None to restore logging.
    """
    global _error_sink
    _error_sink = sink


def report(exc: BaseException) -> None:
    """Send exc to the error sink."""
    if _error_sink is not None:
        _error_sink(exc)
    elif isinstance(exc, ReentrantHandlerError):
        logger.error("%s", exc)
    else:
        logger.error("Handler failed", exc_info=exc)


def fire(ctx: MutationContext) -> None:
    """Run every scheduled handler once. Handlers scheduled meanwhile by nested
    writes are fired by those writes, not here."""
    for handler in ctx.drain():
        if _tracking.is_running(handler):
            report(ReentrantHandlerError(handler))
            continue
        with _tracking.running(handler):
            try:
                handler.fire()
            except Exception as exc:
                report(exc)
