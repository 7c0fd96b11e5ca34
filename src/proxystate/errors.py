"""Exceptions raised or reported by ProxyState."""


class ProxyStateError(Exception):
    """Base class for ProxyState errors."""


class ReentrantHandlerError(ProxyStateError):
    """A handler re-triggered itself by mutating data it observes.

    Reported through the error sink; the offending invocation is skipped.
    """

    def __init__(self, handler) -> None:
        super().__init__(f"{handler!r} re-triggered itself while running: infinite loop")
        self.handler = handler


class UntrackedGetterError(ProxyStateError):
    """A subscription getter finished without reading any reactive property."""
