"""Root conftest — shared fixtures: SQLite database, fake adapters, seeded catalog.

Invariants:
    - Environment is pinned before any ticketbot import reads settings
    - Every test gets a fresh SQLite database file under tmp_path
    - Fake adapters record every outbound call and never touch the network

Design Decisions:
    - File database over :memory: so each AsyncSession gets its own connection
      and service commits behave as they do against PostgreSQL
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_fake_secret")
os.environ.setdefault("WHATSAPP_VERIFY_TOKEN", "verify-me")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession, create_async_engine, async_sessionmaker,
)

from ticketbot.config import Settings  # noqa: E402
from ticketbot.db.base import Base  # noqa: E402
import ticketbot.models  # noqa: E402,F401
from ticketbot.models.event import Event, TicketType  # noqa: E402
from tests.fakes import (  # noqa: E402
    SECRET_KEY, VERIFY_TOKEN, FakeChannel, FakeGateway, FakeQrStore,
)


# ─── Fixtures ────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'settings.db'}",
        paystack_secret_key=SECRET_KEY,
        whatsapp_verify_token=VERIFY_TOKEN,
        public_base_url="https://tickets.test",
        media_dir=str(tmp_path / "media"),
    )


@pytest.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ticketbot.db'}", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def qr_store() -> FakeQrStore:
    return FakeQrStore()


@pytest.fixture
async def catalog(test_db):
    """Event abc123 (Regular ₦5,000 x10, VIP ₦15,000 x2) plus a draft and a sold-out event."""
    test_db.add_all([
        Event(id="abc123", title="Lagos Jazz Night", currency="NGN",
              status="published", visibility="public"),
        Event(id="draft1", title="Secret Rehearsal", currency="NGN",
              status="draft", visibility="public"),
        Event(id="gone99", title="Sold Out Gala", currency="NGN",
              status="published", visibility="public"),
    ])
    await test_db.flush()
    test_db.add_all([
        TicketType(id="regular", event_id="abc123", name="Regular",
                   price=Decimal("5000"), quantity=10, sold=0),
        TicketType(id="vip", event_id="abc123", name="VIP",
                   price=Decimal("15000"), quantity=2, sold=0),
        TicketType(id="gala", event_id="gone99", name="Gala",
                   price=Decimal("20000"), quantity=5, sold=5),
    ])
    await test_db.commit()
    return test_db
