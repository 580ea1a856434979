import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

PRESALE_WALLET = "PresaLe1111111111111111111111111111111111111"

# Settings are cached on first use; set the test env before anything imports app
os.environ.setdefault("MONGODB_DB_NAME", "presale_test")
os.environ.setdefault("PRESALE_WALLET", PRESALE_WALLET)
os.environ.setdefault("HELIUS_WEBHOOK_AUTH", "")


class FakeVerifier:
    """Stands in for ChainVerifier; returns a fixed verdict and records calls."""

    def __init__(self, verdict=None):
        from app.services.chain_verifier import Verdict
        self.verdict = verdict or Verdict.CONFIRMED
        self.calls = []

    async def verify(self, transaction_id, claimed_wallet, claimed_amount):
        import asyncio
        self.calls.append((transaction_id, claimed_wallet, claimed_amount))
        await asyncio.sleep(0)  # yield so concurrent callers interleave
        return self.verdict


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory Mongo per test, initialised like production."""
    from mongomock_motor import AsyncMongoMockClient

    from app.db.init import init_db
    client = await init_db(AsyncMongoMockClient())
    yield client


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def settings():
    from app.core.config import get_settings
    return get_settings()


@pytest.fixture
def engine(db, verifier, settings):
    from app.services.settlement import SettlementEngine
    return SettlementEngine(verifier, settings)


@pytest_asyncio.fixture
async def client(engine) -> AsyncGenerator[AsyncClient, None]:
    from app.deps import get_settlement_engine
    from app.main import app
    app.dependency_overrides[get_settlement_engine] = lambda: engine
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
