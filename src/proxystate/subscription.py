"""Subscriptions — callbacks bound to the edge a getter reads.

subscribe(getter, callback) evaluates getter once under a fresh read log and
registers itself on the last (proxy, key) edge read. If the getter fails
because part of the path is missing, the subscription still sits on the
deepest edge that did resolve, so it wakes up when the path appears.

When its edge is dirty the subscription detaches, resolves the getter again
(the edge may now belong to a different node), and calls back if the path
resolved before or after the change. Rebinding does the same without calling
back; the proxy layer uses it for handlers left on a detached subtree.

The Subscription object itself is the handler. Its identity stays the same
across re-resolutions, which is how the scheduler recognises a handler that
re-triggers itself.
"""

from __future__ import annotations

from typing import Any, Callable

from proxystate import _tracking
from proxystate.errors import UntrackedGetterError

# What a getter raises when an intermediate segment of its path is absent:
# missing key or index, subscripting None, missing attribute.
_NOT_FOUND = (LookupError, TypeError, AttributeError)


class Subscription:
    """A callback bound to exactly one edge at a time."""

    __slots__ = ("_getter", "_callback", "_edge", "_found", "_disposed")

    def __init__(self, getter: Callable[[], Any], callback: Callable[[], Any]) -> None:
        self._getter = getter
        self._callback = callback
        self._edge: tuple[Any, Any] | None = None
        self._found = False
        self._disposed = False

    @property
    def edge(self) -> tuple[Any, Any] | None:
        """The (proxy, key) edge currently subscribed to."""
        return self._edge

    @property
    def found(self) -> bool:
        """Did the getter resolve the last time it ran?"""
        return self._found

    def _attach(self) -> None:
        found = False
        with _tracking.reading() as log:
            try:
                self._getter()
                found = True
            except _NOT_FOUND:
                pass
        if log.last is None:
            raise UntrackedGetterError(f"{self._getter!r} did not read any reactive property")

        proxy, key = log.last
        proxy._node.add_handler(key, self)
        self._edge = (proxy, key)
        self._found = found

    def _detach(self) -> bool:
        if self._edge is None:
            return False
        proxy, key = self._edge
        self._edge = None
        return proxy._node.remove_handler(key, self)

    def fire(self) -> None:
        """Called by the scheduler when the subscribed edge is dirty."""
        if not self._detach():
            return
        found_before = self._found
        self._attach()
        if found_before or self._found:
            self._callback()

    def rebind(self) -> None:
        """Re-resolve the edge without calling back."""
        if not self._detach():
            return
        self._attach()

    def unsubscribe(self) -> None:
        """Stop this subscription. Safe to call more than once."""
        self._disposed = True
        self._detach()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._callback, "__name__", repr(self._callback))
        return f"Subscription({name}, {state})"


def subscribe(getter: Callable[[], Any], callback: Callable[[], Any]) -> Callable[[], None]:
    """Call callback whenever the value read by getter changes.

    getter runs once now to find the edge it depends on. Returns a function
    that unsubscribes.

    Usage:
        state = wrap({"todos": []})
        log = []

        unsubscribe = subscribe(lambda: state["todos"], lambda: log.append("todos"))
        state["todos"].append("write docs")
        # log == ["todos"] — a new item changed the list under state["todos"]

        unsubscribe()
        state["todos"].append("ship")
        # log == ["todos"] — stopped
    """
    subscription = Subscription(getter, callback)
    subscription._attach()
    return subscription.unsubscribe
