import pytest
from httpx import ASGITransport, AsyncClient

from notify_relay.main import create_app
from tests.fakes import make_settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def demo_settings():
    return make_settings(DEMO_MODE=True)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def demo_app(demo_settings):
    return create_app(demo_settings)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def demo_client(demo_app):
    async with AsyncClient(transport=ASGITransport(app=demo_app), base_url="http://test") as ac:
        yield ac
