"""
Shared fixtures for the Rollcall test suite.

The project root is put on sys.path so the suite runs from a plain checkout
as well as from an installed package.
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent.parent

if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rollcall.checkin.device_marker import DeviceMarkers
from rollcall.main import create_app
from rollcall.notifier import NotificationHub
from rollcall.store import SessionStore
from rollcall.tests.helpers import make_settings


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def markers() -> DeviceMarkers:
    return DeviceMarkers("test-secret", ttl_seconds=86400)


@pytest.fixture
def app():
    return create_app(make_settings())


@pytest_asyncio.fixture
async def client(app):
    """Async httpx client using ASGI transport: no live server needed."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
