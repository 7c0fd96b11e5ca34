"""ProxyState: transparently reactive views over plain Python data."""

from importlib.metadata import version as _version

__version__ = _version("proxystate")

from proxystate._anchor import LENGTH
from proxystate.errors import ProxyStateError, ReentrantHandlerError, UntrackedGetterError
from proxystate.proxy import ReactiveDict, ReactiveList, ReactiveObject, is_reactive, to_plain, wrap
from proxystate.scheduler import set_error_sink
from proxystate.subscription import Subscription, subscribe
from proxystate.hooks import create_use_subscribe
# textual NOT auto-imported — opt-in only

__all__ = [
    "LENGTH",
    "ProxyStateError",
    "ReentrantHandlerError",
    "UntrackedGetterError",
    "ReactiveDict",
    "ReactiveList",
    "ReactiveObject",
    "is_reactive",
    "to_plain",
    "wrap",
    "set_error_sink",
    "Subscription",
    "subscribe",
    "create_use_subscribe",
]
