"""API test fixtures — the FastAPI app over ASGITransport with every dependency overridden."""

import pytest
from httpx import ASGITransport, AsyncClient

import ticketbot.infrastructure.database as db_module
from ticketbot.api.dependencies import (
    get_messaging_channel, get_payment_gateway, get_qr_store,
)
from ticketbot.config import get_settings
from ticketbot.infrastructure.database import DatabaseSessionManager, get_db
from ticketbot.main import app


@pytest.fixture
async def client(
    test_engine, test_session_factory, settings, channel, gateway, qr_store,
):
    """HTTP client against the app, wired to the SQLite test database and fakes."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_messaging_channel] = lambda: channel
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_qr_store] = lambda: qr_store

    # Readiness probe reads the module-level manager directly
    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
