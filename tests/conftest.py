"""
Shared pytest configuration and fixtures for Swap Event Sync tests.

Factories and the fake fetcher live in tests/helpers.py; this module wires
them into fixtures and silences the per-module file loggers.
"""

from __future__ import annotations

import contextlib
from unittest.mock import MagicMock, patch

import pytest

from core.streams import load_stream_specs
from tests.helpers import FakeFetcher

_LOGGED_MODULES = (
    "core.reconciler",
    "core.backfill",
    "core.catch_up",
    "core.sync_engine",
    "core.event_store",
    "core.block_watcher",
    "execution.log_fetcher",
    "execution.redis_publisher",
)


# ---------------------------------------------------------------------------
# Logger fixture (autouse)
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def quiet_loggers():
    """Replace every module's file logger with a MagicMock."""
    with contextlib.ExitStack() as stack:
        for module in _LOGGED_MODULES:
            stack.enter_context(
                patch(f"{module}.setup_module_logger", return_value=MagicMock())
            )
        stack.enter_context(
            patch("core.reconciler.get_dispatch_audit_logger", return_value=MagicMock())
        )
        yield


# ---------------------------------------------------------------------------
# Shared component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def stream_specs():
    """StreamSpecs resolved from the real chain config and ABI files."""
    return load_stream_specs()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def store():
    from core.event_store import EventStore

    return EventStore()
