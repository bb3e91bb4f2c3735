"""Shared pytest configuration for calpost_lite tests."""

from typing import Any


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests spanning HTTP layers")
