"""Tests for the local hash-chained ledger and the HTTP ledger gateway."""

import asyncio
import json
from datetime import date

import httpx
import pytest

from medverify_engine.common.exceptions import (
    AlreadyAttestedError,
    LedgerError,
    LedgerUnavailableError,
)
from medverify_engine.ledger.http import HttpLedgerGateway
from medverify_engine.ledger.local import LocalLedger
from medverify_engine.ledger.models import LedgerEntryModel
from medverify_engine.ledger.schemas import product_metadata


HMAC_KEY = "test-ledger-key-for-unit-tests"
TX_HASH = "0x" + "ab" * 32


def paracetamol() -> dict:
    return product_metadata(
        "Paracetamol 500mg", "Nepal Pharma Ltd", date(2026, 1, 1), date(2026, 12, 31), "B1",
    )


@pytest.fixture
def ledger(ledger_db):
    return LocalLedger(ledger_db, HMAC_KEY, timeout=1.0)


class TestLocalLedgerProducts:
    async def test_query_unknown_returns_none(self, ledger):
        assert await ledger.query("MED-NOPE") is None

    async def test_attest_then_query(self, ledger):
        reference = await ledger.attest("MED-AUTH200000", paracetamol())
        assert reference.block_number == 1
        assert len(reference.transaction_hash) == 64

        attestation = await ledger.query("MED-AUTH200000")
        assert attestation.exists is True
        assert attestation.is_verified is True
        assert attestation.name == "Paracetamol 500mg"
        assert attestation.manufacturer == "Nepal Pharma Ltd"
        assert attestation.manufacture_date == date(2026, 1, 1)
        assert attestation.expiry_date == date(2026, 12, 31)
        assert attestation.reference == reference

    async def test_repeated_queries_are_identical(self, ledger):
        await ledger.attest("MED-AUTH200000", paracetamol())
        first = await ledger.query("MED-AUTH200000")
        second = await ledger.query("MED-AUTH200000")
        assert first == second
        assert first.to_dict() == second.to_dict()

    async def test_duplicate_attest_raises(self, ledger):
        await ledger.attest("MED-AUTH200000", paracetamol())
        with pytest.raises(AlreadyAttestedError):
            await ledger.attest("MED-AUTH200000", paracetamol())

    async def test_timeout_is_unavailable(self, ledger_db):
        ledger = LocalLedger(ledger_db, HMAC_KEY, timeout=0.01)

        async def slow_query(product_id):
            await asyncio.sleep(1)

        ledger._query = slow_query
        with pytest.raises(LedgerUnavailableError):
            await ledger.query("MED-1")


class TestLocalLedgerTokens:
    async def test_unknown_token(self, ledger):
        assert await ledger.verify_token("c" * 64) is False

    async def test_attested_token(self, ledger):
        await ledger.attest_token("c" * 64, "MED-1")
        assert await ledger.verify_token("c" * 64) is True

    async def test_product_and_token_namespaces_are_separate(self, ledger):
        await ledger.attest_token("MED-1", "MED-1")
        assert await ledger.query("MED-1") is None


class TestLocalLedgerChain:
    async def test_entries_are_linked(self, ledger, ledger_db):
        await ledger.attest("MED-A", paracetamol())
        await ledger.attest_token("d" * 64, "MED-A")
        async with ledger_db.get_session() as session:
            first = await session.get(LedgerEntryModel, 1)
            second = await session.get(LedgerEntryModel, 2)
        assert first.prev_hash is None
        assert second.prev_hash == first.entry_hash

    async def test_verify_intact_chain(self, ledger):
        await ledger.attest("MED-A", paracetamol())
        await ledger.attest("MED-B", paracetamol())
        await ledger.attest_token("d" * 64, "MED-A")
        result = await ledger.verify_chain()
        assert result == {"valid": True, "entries_checked": 3, "break_at": None}

    async def test_verify_empty_chain(self, ledger):
        result = await ledger.verify_chain()
        assert result["valid"] is True
        assert result["entries_checked"] == 0

    async def test_tampered_payload_breaks_chain(self, ledger, ledger_db):
        await ledger.attest("MED-A", paracetamol())
        await ledger.attest("MED-B", paracetamol())
        async with ledger_db.get_session() as session:
            entry = await session.get(LedgerEntryModel, 2)
            entry.payload = {**entry.payload, "expiry_date": "2099-12-31"}

        result = await ledger.verify_chain()
        assert result["valid"] is False
        assert result["break_at"] == 2
        assert result["entries_checked"] == 1

    async def test_wrong_key_fails_signature(self, ledger, ledger_db):
        await ledger.attest("MED-A", paracetamol())
        other = LocalLedger(ledger_db, "a-different-key")
        result = await other.verify_chain()
        assert result["valid"] is False
        assert result["break_at"] == 1

    async def test_concurrent_appends_keep_chain_intact(self, ledger):
        await asyncio.gather(*[
            ledger.attest(f"MED-{i}", paracetamol()) for i in range(10)
        ])
        result = await ledger.verify_chain()
        assert result == {"valid": True, "entries_checked": 10, "break_at": None}


def make_gateway(handler) -> HttpLedgerGateway:
    return HttpLedgerGateway(
        "http://ledger.test", api_token="tok", timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


class TestHttpLedgerGateway:
    async def test_attest_posts_epoch_millis(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"transactionHash": TX_HASH, "blockNumber": 7})

        gateway = make_gateway(handler)
        reference = await gateway.attest("MED-1", paracetamol())
        await gateway.close()

        assert seen["path"] == "/medicines"
        assert seen["auth"] == "Bearer tok"
        assert seen["body"]["productId"] == "MED-1"
        assert seen["body"]["manufactureDate"] == 1767225600000
        assert seen["body"]["expiryDate"] == 1798675200000
        assert reference.transaction_hash == TX_HASH
        assert reference.block_number == 7

    async def test_attest_conflict(self):
        gateway = make_gateway(lambda request: httpx.Response(409, json={"error": "exists"}))
        with pytest.raises(AlreadyAttestedError):
            await gateway.attest("MED-1", paracetamol())
        await gateway.close()

    async def test_attest_rejected(self):
        gateway = make_gateway(lambda request: httpx.Response(400, json={"error": "bad"}))
        with pytest.raises(LedgerError) as exc_info:
            await gateway.attest("MED-1", paracetamol())
        assert not isinstance(exc_info.value, LedgerUnavailableError)
        await gateway.close()

    async def test_query_parses_attestation(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/medicines/MED-1"
            return httpx.Response(200, json={
                "exists": True,
                "isVerified": True,
                "name": "Paracetamol 500mg",
                "manufacturer": "Nepal Pharma Ltd",
                "manufactureDate": 1767225600000,
                "expiryDate": "2026-12-31",
                "transactionHash": TX_HASH,
                "blockNumber": 3,
            })

        gateway = make_gateway(handler)
        attestation = await gateway.query("MED-1")
        await gateway.close()

        assert attestation.is_verified is True
        assert attestation.manufacture_date == date(2026, 1, 1)
        assert attestation.expiry_date == date(2026, 12, 31)
        assert attestation.reference.block_number == 3

    @pytest.mark.parametrize("response", [
        httpx.Response(404, json={"error": "not found"}),
        httpx.Response(200, json={"exists": False}),
    ])
    async def test_query_miss(self, response):
        gateway = make_gateway(lambda request: response)
        assert await gateway.query("MED-1") is None
        await gateway.close()

    async def test_timeout_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        gateway = make_gateway(handler)
        with pytest.raises(LedgerUnavailableError):
            await gateway.query("MED-1")
        await gateway.close()

    async def test_connection_error_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        gateway = make_gateway(handler)
        with pytest.raises(LedgerUnavailableError):
            await gateway.verify_token("e" * 64)
        await gateway.close()

    async def test_server_error_is_unavailable(self):
        gateway = make_gateway(lambda request: httpx.Response(503))
        with pytest.raises(LedgerUnavailableError):
            await gateway.query("MED-1")
        await gateway.close()

    async def test_verify_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == f"/qr/{'e' * 64}":
                return httpx.Response(200, json={"valid": True})
            return httpx.Response(404)

        gateway = make_gateway(handler)
        assert await gateway.verify_token("e" * 64) is True
        assert await gateway.verify_token("f" * 64) is False
        await gateway.close()

    async def test_attest_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"transactionHash": TX_HASH, "blockNumber": 9})

        gateway = make_gateway(handler)
        reference = await gateway.attest_token("e" * 64, "MED-1")
        await gateway.close()
        assert seen["body"] == {"qrHash": "e" * 64, "productId": "MED-1"}
        assert reference.block_number == 9

    @pytest.mark.parametrize("overrides", [
        {"manufactureDate": "not-a-date"},
        {"expiryDate": 10 ** 20},
        {"blockNumber": "three"},
        {"blockNumber": [3]},
    ])
    async def test_malformed_attestation_is_ledger_error(self, overrides):
        body = {
            "exists": True,
            "isVerified": True,
            "name": "Paracetamol 500mg",
            "manufacturer": "Nepal Pharma Ltd",
            "manufactureDate": 1767225600000,
            "expiryDate": 1798675200000,
            "transactionHash": TX_HASH,
            "blockNumber": 3,
            **overrides,
        }
        gateway = make_gateway(lambda request: httpx.Response(200, json=body))
        with pytest.raises(LedgerError):
            await gateway.query("MED-1")
        await gateway.close()

    async def test_malformed_token_check_is_ledger_error(self):
        gateway = make_gateway(lambda request: httpx.Response(200, json={"valid": "yes"}))
        with pytest.raises(LedgerError):
            await gateway.verify_token("e" * 64)
        await gateway.close()

    async def test_product_id_is_escaped_in_path(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["raw_path"] = request.url.raw_path
            return httpx.Response(404)

        gateway = make_gateway(handler)
        assert await gateway.query("MED-1/../qr?x=1") is None
        await gateway.close()
        assert seen["raw_path"] == b"/medicines/MED-1%2F..%2Fqr%3Fx%3D1"
