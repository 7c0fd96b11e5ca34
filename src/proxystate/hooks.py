"""Hook factory — binds subscribe() to a host UI framework's render cycle.

The host supplies its own primitives:

    use_effect(effect, deps)       registers effect; effect() returns a cleanup
    use_reducer(reducer, initial)  returns (state, dispatch)

The produced hook subscribes once (empty deps), and forces a re-render by
dispatching to a counter reducer whenever the subscribed edge changes. The
user callback can return False to skip that re-render.
"""

from __future__ import annotations

from typing import Any, Callable

from proxystate.subscription import subscribe

UseEffect = Callable[[Callable[[], Any], list], None]
UseReducer = Callable[[Callable[..., Any], Any], tuple]


def _increment(count: int) -> int:
    return count + 1


def create_use_subscribe(use_effect: UseEffect, use_reducer: UseReducer):
    """Build a use_subscribe(getter, callback) hook for a host framework."""

    def use_subscribe(getter: Callable[[], Any], callback: Callable[[], bool | None]) -> None:
        _, force_update = use_reducer(_increment, 0)

        def effect() -> Callable[[], None]:
            def on_change() -> None:
                if callback() is not False:
                    force_update()

            return subscribe(getter, on_change)

        use_effect(effect, [])

    return use_subscribe
