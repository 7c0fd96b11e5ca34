"""Data anchor — node state and the identity registry.

Each proxy is a thin handle holding one Node. The Node carries everything the
mutation pipeline needs: the wrapped container, its storage, its parents and
the handlers subscribed to its edges.

The registry maps id(container) -> proxy, holding proxies weakly. A proxy
keeps its container alive, so an id never gets reused while its entry exists.
"""

from __future__ import annotations

import itertools
import weakref
from typing import Any, Iterator

KEYED = "keyed"
SEQUENCE = "sequence"


class _Length:
    """Pseudo-key for the length of a reactive list."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "LENGTH"


LENGTH = _Length()

registry: weakref.WeakValueDictionary[int, Reactive] = weakref.WeakValueDictionary()

# ID generation — itertools.count is thread-safe (C-level GIL atomic)
_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


def _class_default(cls: type, name: Any) -> Any:
    """Plain class-level value behind an unset instance attribute, else None."""
    for klass in cls.__mro__:
        if name in klass.__dict__:
            attr = klass.__dict__[name]
            return None if hasattr(type(attr), "__get__") else attr
    return None


class Reactive:
    """Base of every proxy type. Instances hold a single Node."""

    __slots__ = ("_node", "__weakref__")


class Node:
    """Bookkeeping for one wrapped container."""

    __slots__ = ("id", "original", "data", "kind", "allow", "parents", "handlers")

    def __init__(self, original: Any, data: Any, kind: str, allow: tuple[type, ...]) -> None:
        self.id = new_id()
        self.original = original
        # dict for KEYED, list for SEQUENCE. For objects this is vars(original).
        self.data = data
        self.kind = kind
        self.allow = allow
        # Entries vanish with the parent proxy.
        self.parents: weakref.WeakValueDictionary[int, Reactive] = weakref.WeakValueDictionary()
        self.handlers: dict[Any, list] = {}

    # --- Raw storage (never recorded as reads) ---

    def get(self, key: Any) -> Any:
        """Current value under key, None when absent."""
        if self.kind == SEQUENCE:
            if key is LENGTH:
                return len(self.data)
            if 0 <= key < len(self.data):
                return self.data[key]
            return None
        if key in self.data or self.data is self.original:
            return self.data.get(key)
        return _class_default(type(self.original), key)

    def keys(self) -> list:
        if self.kind == SEQUENCE:
            return list(range(len(self.data)))
        return list(self.data)

    def items(self) -> Iterator[tuple[Any, Any]]:
        if self.kind == SEQUENCE:
            return iter(list(enumerate(self.data)))
        return iter(list(self.data.items()))

    def holds(self, value: Any) -> bool:
        """Is value stored (by identity) under any key?"""
        return any(v is value for _, v in self.items())

    # --- Parents ---

    def add_parent(self, parent: Reactive) -> None:
        self.parents[parent._node.id] = parent

    def discard_parent(self, parent: Reactive) -> None:
        self.parents.pop(parent._node.id, None)

    def live_parents(self) -> list[Reactive]:
        return list(self.parents.values())

    # --- Handlers ---

    def add_handler(self, key: Any, handler) -> None:
        self.handlers.setdefault(key, []).append(handler)

    def remove_handler(self, key: Any, handler) -> bool:
        handlers = self.handlers.get(key)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self.handlers[key]
        return True

    def __repr__(self) -> str:
        return f"Node(#{self.id}, {self.kind}, parents={len(self.parents)}, edges={len(self.handlers)})"
