"""Shared pytest configuration."""

import pytest


@pytest.fixture
def anyio_backend():
    """Run anyio-marked tests on asyncio only; the manager uses asyncio.gather."""
    return "asyncio"
