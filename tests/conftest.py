import pytest

from proxystate import set_error_sink


@pytest.fixture
def errors():
    """Collect reported handler errors instead of logging them."""
    reported = []
    set_error_sink(reported.append)
    try:
        yield reported
    finally:
        set_error_sink(None)
