# tests/conftest.py

"""Shared pytest fixtures."""

from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Patch time.sleep globally so retry loops run instantly."""
    with patch("time.sleep"):
        yield


@pytest.fixture(autouse=True)
def clear_interceptors() -> Generator[None, None, None]:
    """Drop any network interceptor a test left behind."""
    yield
    from dkprice.scrapers import network_observer

    for interceptor in list(network_observer._interceptors.values()):
        interceptor.uninstall()
    network_observer._interceptors.clear()
