"""Shared test fixtures for MedVerify-Engine."""

import os
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from medverify_engine.common.database import DatabaseManager
from medverify_engine.common.exceptions import AlreadyAttestedError, LedgerUnavailableError
from medverify_engine.ledger.gateway import LedgerGateway
from medverify_engine.ledger.models import LedgerEntryModel
from medverify_engine.ledger.schemas import (
    LedgerAttestation,
    LedgerReference,
    attestation_from_metadata,
)


LEDGER_HMAC_KEY = "test-ledger-key-for-unit-tests"
API_KEY = "test-admin-api-key"

T0 = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class MutableClock:
    """Injectable clock; tests move it explicitly."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeLedger(LedgerGateway):
    """In-memory ledger with switchable outages."""

    name = "fake"

    def __init__(self):
        self.products: dict[str, LedgerAttestation] = {}
        self.tokens: set[str] = set()
        self.available = True
        self.token_checks_available = True
        self._block = 0

    def _check(self) -> None:
        if not self.available:
            raise LedgerUnavailableError("Ledger request timed out")

    def _next_reference(self) -> LedgerReference:
        self._block += 1
        return LedgerReference(f"{self._block:064x}", self._block)

    async def attest(self, product_id: str, metadata: dict[str, Any]) -> LedgerReference:
        self._check()
        if product_id in self.products:
            raise AlreadyAttestedError()
        reference = self._next_reference()
        self.products[product_id] = attestation_from_metadata(metadata, reference=reference)
        return reference

    async def query(self, product_id: str) -> LedgerAttestation | None:
        self._check()
        return self.products.get(product_id)

    async def attest_token(self, token_hash: str, product_id: str) -> LedgerReference:
        self._check()
        if token_hash in self.tokens:
            raise AlreadyAttestedError()
        self.tokens.add(token_hash)
        return self._next_reference()

    async def verify_token(self, token_hash: str) -> bool:
        self._check()
        if not self.token_checks_available:
            raise LedgerUnavailableError("Ledger request timed out")
        return token_hash in self.tokens


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def fake_ledger():
    return FakeLedger()


@pytest.fixture
async def db():
    manager = DatabaseManager("sqlite+aiosqlite://")
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
async def ledger_db():
    manager = DatabaseManager("sqlite+aiosqlite://")
    await manager.init()
    await manager.create_all(tables=[LedgerEntryModel.__table__])
    yield manager
    await manager.close()


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app():
    """Create a test app with in-memory databases and the local ledger."""
    os.environ["MEDVERIFY_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["MEDVERIFY_LEDGER_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["MEDVERIFY_LEDGER_BACKEND"] = "local"
    os.environ["MEDVERIFY_LEDGER_HMAC_KEY"] = LEDGER_HMAC_KEY
    os.environ["MEDVERIFY_API_KEY"] = API_KEY

    # Clear caches and singletons so new env vars take effect
    from medverify_engine.common.config import get_settings
    get_settings.cache_clear()

    from medverify_engine.deps import reset_singletons
    reset_singletons()

    from medverify_engine.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DBs since ASGITransport doesn't run lifespan
    from medverify_engine.deps import get_db, get_ledger_db, get_qr_token_service
    db = get_db()
    await db.init()
    await db.create_all()
    ledger_db = get_ledger_db()
    await ledger_db.init()
    await ledger_db.create_all(tables=[LedgerEntryModel.__table__])

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await get_qr_token_service().wait_for_attestations()
    await ledger_db.close()
    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-MedVerify-Api-Key": API_KEY}
