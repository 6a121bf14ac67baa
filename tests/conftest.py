"""Shared fixtures for fleet_admin tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fleet_admin.models import HostRecord


def make_handle(address: str) -> MagicMock:
    """Create a fake transport handle tagged with its address."""
    handle = MagicMock(name=f"handle:{address}")
    handle.address = address
    return handle


@pytest.fixture
def mock_executor() -> MagicMock:
    """RemoteExecutor double: every open succeeds, every invoke returns 'ok'."""
    executor = MagicMock()
    executor.open = AsyncMock(side_effect=make_handle)
    executor.invoke = AsyncMock(return_value="ok")
    executor.close = AsyncMock()
    return executor


@pytest.fixture
def hosts() -> list[HostRecord]:
    """Three hosts with distinct addresses."""
    return [
        HostRecord(name="app-01", address="app-01.example.local"),
        HostRecord(name="app-02", address="app-02.example.local"),
        HostRecord(name="app-03", address="app-03.example.local"),
    ]
