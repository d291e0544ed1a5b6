import pytest

from mcwatch.sinks import CollectingSink


@pytest.fixture
def collecting_sink():
    return CollectingSink()
