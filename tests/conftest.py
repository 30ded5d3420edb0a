"""Root conftest.py for the restrpc test suite.

This file contains project-wide fixtures and pytest configuration.
"""

from collections.abc import Generator

import pytest
from loguru import logger

from restrpc.core.config import get_settings
from restrpc.core.context import RequestContext
from restrpc.core.error_context import _get_sensitive_fields
from restrpc.core.logging import _state

# Import router fixtures to make them available to all tests
from tests.fixtures.test_router_fixtures import app_router, greeting_router

# Re-export fixtures for pytest discovery
__all__ = ["app_router", "clean_state", "greeting_router", "log_records"]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clean_state() -> Generator[None]:
    """Reset caches, request context and logging state around each test.

    Logging stays marked as configured so that app creation does not add
    stdout handlers during tests.
    """
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    RequestContext.clear()
    _state.configured = True

    yield

    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    RequestContext.clear()


@pytest.fixture
def log_records() -> Generator[list[dict[str, object]]]:
    """Capture Loguru records emitted during the test.

    Yields:
        list[dict[str, object]]: The captured records, in emission order.
    """
    records: list[dict[str, object]] = []
    handler_id = logger.add(
        lambda message: records.append(message.record),  # type: ignore[attr-defined]
        level="DEBUG",
        format="{message}",
    )

    yield records

    logger.remove(handler_id)
