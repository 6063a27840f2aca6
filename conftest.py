"""
Root pytest configuration.
"""

from __future__ import annotations

import os
from collections.abc import Generator

import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

    Environment:
        CI_TIMEOUT_MULTIPLIER: Multiplier for CI environments (default: 1.0)
    """
    raw = os.getenv("CI_TIMEOUT_MULTIPLIER", "1.0")
    try:
        multiplier = float(raw) if raw else 1.0
        multiplier = min(multiplier, max_multiplier)
    except ValueError:
        multiplier = 1.0
    return base * multiplier


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "security: Security-critical tests (signing, secrets)",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests exercising several components together",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that take >1 second",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics_cache() -> Generator[None, None, None]:
    """Reset diagnostics state before and after each test.

    The diagnostics module caches the ``internal_logging_enabled`` setting at
    first access and keeps a swappable writer; both leak between tests
    unless reset here.
    """
    import loganalytics.core.diagnostics as diag

    diag._internal_logging_enabled = None
    diag.set_writer_for_tests(None)
    yield
    diag._internal_logging_enabled = None
    diag.set_writer_for_tests(None)


@pytest.fixture
def captured_diagnostics() -> list[dict]:
    """Enable diagnostics and capture every emitted record."""
    import loganalytics.core.diagnostics as diag

    captured: list[dict] = []
    diag._internal_logging_enabled = True
    diag.set_writer_for_tests(captured.append)
    return captured


@pytest.fixture
def shared_key() -> str:
    # base64("secret-key")
    return "c2VjcmV0LWtleQ=="


@pytest.fixture
def sink_config(shared_key: str) -> dict:
    return {
        "workspace_id": "0b1c2d3e-aaaa-bbbb-cccc-123456789abc",
        "shared_key": shared_key,
        "log_type": "AppLogs",
    }
