"""Reactive proxies — transparent views over plain dicts, lists and objects.

wrap() turns a container into a proxy that reads and writes like the original.
Reads record the (proxy, key) edge they touched so subscribe() can learn what
a getter depends on. Writes run the mutation pipeline:

    wrap new value -> detect changes -> commit -> propagate to ancestors
    -> fire handlers -> rebind handlers left on the detached old value

Everything after the commit runs in a finally block, so handlers and rebinds
happen even when the commit raises.

Wrapping adopts the container: wrappable children are replaced in place by
their proxies. A container is wrapped at most once; wrapping it (or its
proxy) again returns the same proxy.
"""

from __future__ import annotations

import copy
import operator
import reprlib
from collections.abc import Iterable, Mapping, MutableMapping, MutableSequence
from typing import Any, Callable

from proxystate import _anchor, _tracking, scheduler
from proxystate._anchor import KEYED, LENGTH, SEQUENCE, Node, Reactive
from proxystate._mutation import MutationContext, detect_changes, propagate_to_ancestors

_MISSING = object()


def is_reactive(value: Any) -> bool:
    return isinstance(value, Reactive)


def _is_wrappable(value: Any, allow: tuple[type, ...]) -> bool:
    if isinstance(value, Reactive):
        return True
    cls = type(value)
    return cls is dict or cls is list or cls in allow


def wrap(value: Any, allow: Iterable[type] = ()) -> Any:
    """Return the reactive view of value.

    value must be a dict, a list, or an instance of one of the exact types in
    allow. Nested containers are wrapped eagerly, and so is anything assigned
    later. Already-wrapped input is returned as is.

    Usage:
        state = wrap({"user": {"name": "Ada"}})
        state["user"]["name"]          # "Ada", recorded as a read
        state["user"]["name"] = "Bob"  # notifies subscribers of that edge
    """
    allow = tuple(allow)
    if not _is_wrappable(value, allow):
        raise TypeError(
            f"cannot wrap {type(value).__name__!r}: expected dict, list or an allow-listed type"
        )
    return _wrap(value, None, allow)


def _wrap(value: Any, parent: Reactive | None, allow: tuple[type, ...]) -> Reactive:
    if isinstance(value, Reactive):
        proxy = value
    else:
        proxy = _anchor.registry.get(id(value))
        if proxy is None or proxy._node.original is not value:
            proxy = _create(value, allow)
    if parent is not None:
        proxy._node.add_parent(parent)
    return proxy


def _create(value: Any, allow: tuple[type, ...]) -> Reactive:
    if isinstance(value, list):
        proxy = object.__new__(ReactiveList)
        node = Node(value, value, SEQUENCE, allow)
    elif isinstance(value, dict):
        proxy = object.__new__(ReactiveDict)
        node = Node(value, value, KEYED, allow)
    else:
        proxy = object.__new__(ReactiveObject)
        node = Node(value, vars(value), KEYED, allow)
    object.__setattr__(proxy, "_node", node)
    # Registered before recursing so cycles resolve to this proxy.
    _anchor.registry[id(value)] = proxy

    for key, child in node.items():
        if _is_wrappable(child, allow):
            node.data[key] = _wrap(child, proxy, allow)
    return proxy


def _write(proxy: Reactive, key: Any, value: Any, commit: Callable[[Any], None]) -> None:
    """Run one assignment (or deletion) through the mutation pipeline."""
    node = proxy._node
    old = node.get(key)
    detached = old if isinstance(old, Reactive) else None

    if _is_wrappable(value, node.allow):
        value = _wrap(value, proxy, node.allow)

    ctx = MutationContext()
    length = len(node.data) if node.kind == SEQUENCE else None
    try:
        detect_changes(ctx, proxy, key, value)
        commit(value)
        if detached is not None and not node.holds(detached):
            detached._node.discard_parent(proxy)
        if length is not None and len(node.data) != length:
            ctx.mark(proxy, LENGTH)
    finally:
        if ctx.dirty:
            propagate_to_ancestors(ctx, proxy)
        ctx.clear_memos()
        scheduler.fire(ctx)
        if detached is not None:
            rebind_subtree(detached)


def rebind_subtree(proxy: Reactive, seen: set[int] | None = None) -> None:
    """Silently re-resolve every handler in a detached subtree, children first."""
    if seen is None:
        seen = set()
    node = proxy._node
    seen.add(node.id)

    for _, child in node.items():
        if isinstance(child, Reactive) and child._node.id not in seen:
            rebind_subtree(child, seen)

    for handlers in list(node.handlers.values()):
        for handler in list(handlers):
            try:
                handler.rebind()
            except Exception as exc:
                scheduler.report(exc)


def to_plain(value: Any) -> Any:
    """Deep snapshot of a reactive value as plain dicts, lists and objects.

    Shared and cyclic references are kept shared in the snapshot. Nothing is
    recorded as a read.
    """
    return _to_plain(value, {})


def _to_plain(value: Any, memo: dict[int, Any]) -> Any:
    if not isinstance(value, Reactive):
        return value
    node = value._node
    if node.id in memo:
        return memo[node.id]

    if node.kind == SEQUENCE:
        result = []
        memo[node.id] = result
        result.extend(_to_plain(v, memo) for v in node.data)
    elif isinstance(node.original, dict):
        result = {}
        memo[node.id] = result
        for k, v in node.data.items():
            result[k] = _to_plain(v, memo)
    else:
        result = copy.copy(node.original)
        memo[node.id] = result
        vars(result).update({k: _to_plain(v, memo) for k, v in node.data.items()})
    return result


class _Proxy(Reactive):
    __slots__ = ()

    def __new__(cls, *args, **kwargs):
        raise TypeError(f"{cls.__name__} cannot be instantiated directly, use proxystate.wrap()")


class ReactiveDict(_Proxy, MutableMapping):
    """Reactive view of a dict."""

    __slots__ = ()

    # --- Read operations (track) ---

    def __getitem__(self, key: Any) -> Any:
        _tracking.record_read(self, key)
        return self._node.data[key]

    def get(self, key: Any, default: Any = None) -> Any:
        _tracking.record_read(self, key)
        return self._node.data.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._node.data

    def __iter__(self):
        return iter(self._node.data)

    def __len__(self) -> int:
        return len(self._node.data)

    # --- Write operations (notify) ---

    def __setitem__(self, key: Any, value: Any) -> None:
        data = self._node.data
        _write(self, key, value, lambda v: data.__setitem__(key, v))

    def __delitem__(self, key: Any) -> None:
        data = self._node.data
        if key not in data:
            raise KeyError(key)
        _write(self, key, None, lambda v: data.__delitem__(key))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ReactiveDict):
            other = other._node.data
        elif isinstance(other, Mapping) and not isinstance(other, dict):
            other = dict(other.items())
        if not isinstance(other, dict):
            return NotImplemented
        return self._node.data == other

    __hash__ = None

    @reprlib.recursive_repr()
    def __repr__(self) -> str:
        return f"ReactiveDict({self._node.data!r})"


class ReactiveList(_Proxy, MutableSequence):
    """Reactive view of a list.

    Structural changes are spelled out as single-slot writes, each one a full
    pass of the pipeline: insert() shifts the tail up a slot at a time, and
    deletion shifts it down before dropping the last slot.
    """

    __slots__ = ()

    def _normalize(self, index: int) -> int:
        index = operator.index(index)
        size = len(self._node.data)
        i = index + size if index < 0 else index
        if not 0 <= i < size:
            raise IndexError("list index out of range")
        return i

    # --- Read operations (track) ---

    def __getitem__(self, index):
        items = self._node.data
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(items)))]
        index = operator.index(index)
        _tracking.record_read(self, index + len(items) if index < 0 else index)
        return items[index]

    def __iter__(self):
        items = self._node.data
        i = 0
        while i < len(items):
            yield self[i]
            i += 1
        # Ends on the length edge, so a whole-list read sees appends.
        _tracking.record_read(self, LENGTH)

    def __len__(self) -> int:
        _tracking.record_read(self, LENGTH)
        return len(self._node.data)

    # --- Write operations (notify) ---

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            self._assign_slice(index, value)
            return
        items = self._node.data
        i = self._normalize(index)
        _write(self, i, value, lambda v: items.__setitem__(i, v))

    def __delitem__(self, index) -> None:
        items = self._node.data
        if isinstance(index, slice):
            for i in sorted(range(*index.indices(len(items))), reverse=True):
                del self[i]
            return
        i = self._normalize(index)
        last = len(items) - 1
        for j in range(i, last):
            self[j] = items[j + 1]
        _write(self, last, None, lambda v: items.pop())

    def append(self, value: Any) -> None:
        items = self._node.data
        _write(self, len(items), value, items.append)

    def insert(self, index: int, value: Any) -> None:
        items = self._node.data
        size = len(items)
        index = operator.index(index)
        if index < 0:
            index = max(size + index, 0)
        index = min(index, size)
        if index == size:
            self.append(value)
            return
        self.append(items[-1])
        for j in range(size - 1, index, -1):
            self[j] = items[j - 1]
        self[index] = value

    def sort(self, *, key=None, reverse: bool = False) -> None:
        ordered = sorted(self._node.data, key=key, reverse=reverse)
        for i, value in enumerate(ordered):
            self[i] = value

    def _assign_slice(self, index: slice, values: Iterable) -> None:
        values = list(values)
        start, stop, step = index.indices(len(self._node.data))
        if step != 1:
            targets = range(start, stop, step)
            if len(targets) != len(values):
                raise ValueError(
                    f"attempt to assign sequence of size {len(values)} "
                    f"to extended slice of size {len(targets)}"
                )
            for i, value in zip(targets, values):
                self[i] = value
            return
        del self[start:max(start, stop)]
        for offset, value in enumerate(values):
            self.insert(start + offset, value)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ReactiveList):
            other = other._node.data
        if not isinstance(other, list):
            return NotImplemented
        return self._node.data == other

    __hash__ = None

    @reprlib.recursive_repr()
    def __repr__(self) -> str:
        return f"ReactiveList({self._node.data!r})"


def _class_attr(cls: type, name: str) -> Any:
    for klass in cls.__mro__:
        if name in klass.__dict__:
            return klass.__dict__[name]
    return _MISSING


def _find_accessor(cls: type, name: str) -> Any:
    """The data descriptor (property etc.) behind cls.name, or None."""
    attr = _class_attr(cls, name)
    if attr is _MISSING:
        return None
    kind = type(attr)
    if hasattr(kind, "__set__") or hasattr(kind, "__delete__"):
        return attr
    return None


class ReactiveObject(_Proxy):
    """Reactive view of an instance of an allow-listed class.

    Instance attributes are edges. Properties and other data descriptors are
    accessors: they run with the proxy as self, so the attributes they touch
    are tracked, but the accessor itself is never diffed or subscribed to.
    Methods are bound to the proxy for the same reason.
    """

    __slots__ = ()

    @property
    def __class__(self):
        return type(self._node.original)

    def __getattr__(self, name: str) -> Any:
        if name == "_node":
            raise AttributeError(name)
        node = self._node
        original = node.original
        cls = type(original)
        if name.startswith("__") and name.endswith("__"):
            return getattr(original, name)

        accessor = _find_accessor(cls, name)
        if accessor is not None:
            return accessor.__get__(self, cls)
        if name in node.data:
            _tracking.record_read(self, name)
            return node.data[name]
        attr = _class_attr(cls, name)
        if attr is not _MISSING:
            if hasattr(type(attr), "__get__"):
                return attr.__get__(self, cls)
            _tracking.record_read(self, name)
            return attr
        _tracking.record_read(self, name)
        raise AttributeError(f"{cls.__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        node = self._node
        accessor = _find_accessor(type(node.original), name)
        if accessor is not None:
            accessor.__set__(self, value)
            return
        data = node.data
        _write(self, name, value, lambda v: data.__setitem__(name, v))

    def __delattr__(self, name: str) -> None:
        node = self._node
        if _find_accessor(type(node.original), name) is not None:
            return
        data = node.data
        if name not in data:
            raise AttributeError(name)
        _write(self, name, None, lambda v: data.__delitem__(name))

    def __dir__(self):
        return dir(self._node.original)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Reactive):
            other = other._node.original
        return self._node.original == other

    def __hash__(self) -> int:
        return hash(self._node.original)

    def __repr__(self) -> str:
        return f"ReactiveObject({self._node.original!r})"
