"""Read tracking and the handler reentrancy stack.

Uses contextvars so both pieces of state are scoped to the logical call stack
that owns them:

- current_read_log: set for exactly one getter evaluation by subscribe().
  Every proxy read overwrites log.last with its (proxy, key) edge.
- running_handlers: the handlers currently executing, outermost first.
  Nested writes made from inside a handler see the same stack.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Any, Iterator


class ReadLog:
    """Most recent edge read during one getter evaluation."""

    __slots__ = ("last",)

    def __init__(self) -> None:
        self.last: tuple[Any, Any] | None = None


current_read_log: contextvars.ContextVar[ReadLog | None] = contextvars.ContextVar(
    "current_read_log", default=None
)

running_handlers: contextvars.ContextVar[tuple] = contextvars.ContextVar(
    "running_handlers", default=()
)


def record_read(proxy: Any, key: Any) -> None:
    """Called by every proxy read. No-op outside a getter evaluation."""
    log = current_read_log.get()
    if log is not None:
        log.last = (proxy, key)


@contextmanager
def reading() -> Iterator[ReadLog]:
    """Evaluate a getter under a fresh read log."""
    log = ReadLog()
    token = current_read_log.set(log)
    try:
        yield log
    finally:
        current_read_log.reset(token)


def is_running(handler: Any) -> bool:
    return any(h is handler for h in running_handlers.get())


@contextmanager
def running(handler: Any) -> Iterator[None]:
    """Push handler onto the reentrancy stack for the duration of the block."""
    token = running_handlers.set(running_handlers.get() + (handler,))
    try:
        yield
    finally:
        running_handlers.reset(token)
