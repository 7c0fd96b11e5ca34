"""Change detection and ancestor propagation for a single write.

Given the old and new value at a mutated slot, decide which edges are dirty
and collect the handlers subscribed to them. Everything here works on raw
node storage, so none of it is recorded as a read.

Dirty edges are marked children first, then the slot itself, then (via
propagate_to_ancestors) every edge that reaches the slot's container from
above. That ordering is what makes deep handlers fire before shallow ones.
"""

from __future__ import annotations

from typing import Any

from proxystate._anchor import LENGTH, SEQUENCE, Reactive

# Same type and ==, or identical. Everything else that isn't identical changed.
_SCALARS = (str, int, float, complex, bytes, bool)


class MutationContext:
    """Transient state for one top-level write. Passed explicitly, never shared."""

    __slots__ = ("verdicts", "ancestors", "scheduled", "dirty")

    def __init__(self) -> None:
        # node id -> changed? Breaks cycles and shares work across aliases.
        self.verdicts: dict[int, bool] = {}
        self.ancestors: set[int] = set()
        # Insertion-ordered set of handlers to fire.
        self.scheduled: dict[Any, None] = {}
        self.dirty = False

    def mark(self, proxy: Reactive, key: Any) -> int:
        """Mark the (proxy, key) edge dirty. Returns how many handlers it added."""
        self.dirty = True
        handlers = proxy._node.handlers.get(key)
        if not handlers:
            return 0
        for handler in handlers:
            self.scheduled[handler] = None
        return len(handlers)

    def clear_memos(self) -> None:
        self.verdicts.clear()
        self.ancestors.clear()

    def drain(self) -> list:
        handlers = list(self.scheduled)
        self.scheduled.clear()
        return handlers


def _same(old: Any, new: Any) -> bool:
    if old is new:
        return True
    return isinstance(old, _SCALARS) and type(old) is type(new) and old == new


def detect_changes(ctx: MutationContext, proxy: Reactive, key: Any, new: Any) -> bool:
    """Compare the value at (proxy, key) with new, marking every dirty edge.

    new must already be wrapped if it is a container. Returns True if anything
    under the edge changed.
    """
    old = proxy._node.get(key)

    if not isinstance(old, Reactive):
        if _same(old, new):
            return False
        ctx.mark(proxy, key)
        return True

    old_node = old._node
    if old_node.id in ctx.verdicts:
        return ctx.verdicts[old_node.id]

    if not isinstance(new, Reactive) or new._node.kind != old_node.kind:
        # Whole subtree replaced by something of another shape.
        mark_subtree(ctx, old)
        ctx.mark(proxy, key)
        ctx.verdicts[old_node.id] = True
        return True

    ctx.verdicts[old_node.id] = False
    new_node = new._node
    changed = False

    if old_node.kind == SEQUENCE:
        old_len, new_len = len(old_node.data), len(new_node.data)
        for i in range(old_len):
            changed = detect_changes(ctx, old, i, new_node.get(i)) or changed
        for i in range(old_len, new_len):
            ctx.mark(old, i)
            changed = True
        if old_len != new_len:
            ctx.mark(old, LENGTH)
            changed = True
    else:
        old_keys = old_node.keys()
        for k in old_keys:
            changed = detect_changes(ctx, old, k, new_node.get(k)) or changed
        # Optional properties: a key arriving with None is the same as no key.
        for k, value in new_node.items():
            if k not in old_node.data and value is not None and not _same(old_node.get(k), value):
                ctx.mark(old, k)
                changed = True

    if changed:
        ctx.mark(proxy, key)
    ctx.verdicts[old_node.id] = changed
    return changed


def mark_subtree(ctx: MutationContext, proxy: Reactive) -> None:
    """Mark every own and descendant edge of proxy dirty."""
    node = proxy._node
    if node.id in ctx.verdicts:
        return
    ctx.verdicts[node.id] = True

    for key, value in node.items():
        if isinstance(value, Reactive):
            mark_subtree(ctx, value)
        ctx.mark(proxy, key)
    if node.kind == SEQUENCE:
        ctx.mark(proxy, LENGTH)


def propagate_to_ancestors(ctx: MutationContext, proxy: Reactive) -> None:
    """Mark every edge through which proxy is reachable from its parents, upward."""
    node = proxy._node
    if node.id in ctx.ancestors:
        return
    ctx.ancestors.add(node.id)

    for parent in node.live_parents():
        for key, value in parent._node.items():
            if value is proxy:
                ctx.mark(parent, key)
        propagate_to_ancestors(ctx, parent)
