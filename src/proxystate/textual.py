"""Textual integration for ProxyState. Opt-in — requires textual.

Guard + NoMatches + thread-marshal enforced here, not at callsites.
Textual coupling stays in this module; the core knows nothing about widgets.
_paused_apps has a single owner (this module): an app id is present exactly
while inside its pause() context.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches
from proxystate.subscription import subscribe as _subscribe

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded callbacks during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def subscribe(app, getter, callback):
    """subscribe() that safely bridges to Textual widgets.

    Skips the callback while the app is paused or not running, catches
    NoMatches from widget queries, and marshals calls made from a background
    thread via call_from_thread. Returns the unsubscribe function.
    """
    _main = threading.get_ident()

    def _guarded():
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe)
        else:
            _safe()

    def _safe():
        try:
            callback()
        except NoMatches:
            pass

    return _subscribe(getter, _guarded)


def bind(app, widget, getter, callback=None):
    """Refresh widget whenever the value read by getter changes.

    callback, if given, runs first; returning False skips the refresh.
    """

    def _refresh():
        if callback is not None and callback() is False:
            return
        widget.refresh()

    return subscribe(app, getter, _refresh)
