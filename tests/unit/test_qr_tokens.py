"""Tests for QR token issuance and single-use consumption."""

import asyncio
import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from medverify_engine.common.database import DatabaseManager
from medverify_engine.common.exceptions import InvalidQrFormatError
from medverify_engine.qr.codec import is_valid_hash
from medverify_engine.qr.service import ConsumeOutcome, QrTokenService, to_millis


@pytest.fixture
def qr_svc(db, fake_ledger, clock):
    return QrTokenService(db, ledger=fake_ledger, ttl_seconds=300, clock=clock)


class TestIssue:
    async def test_issue_persists_unused_token(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-AUTH200001")
        assert is_valid_hash(issued.token_hash)
        assert issued.issued_at == clock.now
        assert issued.expires_at == clock.now + timedelta(seconds=300)

        token = await qr_svc.get(issued.token_hash)
        assert token is not None
        assert token.product_id == "MED-AUTH200001"
        assert token.used is False
        assert token.used_at is None

    async def test_payload_is_minimal(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-AUTH200001")
        assert json.loads(issued.qr_data) == {
            "h": issued.token_hash,
            "p": "MED-AUTH200001",
            "t": to_millis(clock.now),
        }

    async def test_issued_at_truncated_to_millis(self, qr_svc, clock):
        clock.now = clock.now.replace(microsecond=123456)
        issued = await qr_svc.issue("MED-1")
        assert issued.issued_at.microsecond == 123000

    async def test_each_issue_is_unique(self, qr_svc):
        first = await qr_svc.issue("MED-1")
        second = await qr_svc.issue("MED-1")
        assert first.token_hash != second.token_hash

    async def test_attests_token_on_ledger(self, qr_svc, fake_ledger):
        issued = await qr_svc.issue("MED-1")
        await qr_svc.wait_for_attestations()
        assert issued.token_hash in fake_ledger.tokens

    async def test_ledger_outage_does_not_block_issue(self, qr_svc, fake_ledger):
        fake_ledger.available = False
        with patch("medverify_engine.qr.service.logger") as mock_logger:
            issued = await qr_svc.issue("MED-1")
            await qr_svc.wait_for_attestations()
        assert await qr_svc.get(issued.token_hash) is not None
        assert fake_ledger.tokens == set()
        mock_logger.warning.assert_called_once()


class TestValidateAndConsume:
    async def test_consume_then_replay(self, qr_svc):
        issued = await qr_svc.issue("MED-1")
        assert await qr_svc.validate_and_consume(issued.token_hash, "MED-1") is ConsumeOutcome.CONSUMED
        assert await qr_svc.validate_and_consume(issued.token_hash, "MED-1") is ConsumeOutcome.ALREADY_USED
        assert await qr_svc.validate_and_consume(issued.token_hash, "MED-1") is ConsumeOutcome.ALREADY_USED

    async def test_consume_marks_used(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-1")
        clock.advance(seconds=30)
        await qr_svc.validate_and_consume(issued.token_hash, "MED-1")
        token = await qr_svc.get(issued.token_hash)
        assert token.used is True
        assert token.used_at is not None

    async def test_unknown_hash(self, qr_svc):
        outcome = await qr_svc.validate_and_consume("b" * 64, "MED-1")
        assert outcome is ConsumeOutcome.NOT_FOUND

    async def test_hash_bound_to_other_product(self, qr_svc):
        issued = await qr_svc.issue("MED-1")
        outcome = await qr_svc.validate_and_consume(issued.token_hash, "MED-2")
        assert outcome is ConsumeOutcome.NOT_FOUND
        token = await qr_svc.get(issued.token_hash)
        assert token.used is False

    async def test_malformed_hash_raises(self, qr_svc):
        with pytest.raises(InvalidQrFormatError):
            await qr_svc.validate_and_consume("NOT-A-HASH", "MED-1")

    async def test_expired_one_ms_past_ttl(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-1")
        clock.advance(seconds=300, milliseconds=1)
        outcome = await qr_svc.validate_and_consume(issued.token_hash, "MED-1")
        assert outcome is ConsumeOutcome.EXPIRED
        token = await qr_svc.get(issued.token_hash)
        assert token.used is False

    async def test_accepted_one_ms_before_ttl(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-1")
        clock.advance(seconds=299, milliseconds=999)
        outcome = await qr_svc.validate_and_consume(issued.token_hash, "MED-1")
        assert outcome is ConsumeOutcome.CONSUMED

    async def test_accepted_exactly_at_ttl(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-1")
        clock.advance(seconds=300)
        outcome = await qr_svc.validate_and_consume(issued.token_hash, "MED-1")
        assert outcome is ConsumeOutcome.CONSUMED

    async def test_used_reported_before_expired(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-1")
        await qr_svc.validate_and_consume(issued.token_hash, "MED-1")
        clock.advance(minutes=10)
        outcome = await qr_svc.validate_and_consume(issued.token_hash, "MED-1")
        assert outcome is ConsumeOutcome.ALREADY_USED

    async def test_claimed_timestamp_is_informational(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-1")
        forged = to_millis(clock.now) + 3_600_000
        with patch("medverify_engine.qr.service.logger") as mock_logger:
            outcome = await qr_svc.validate_and_consume(issued.token_hash, "MED-1", forged)
        assert outcome is ConsumeOutcome.CONSUMED
        mock_logger.warning.assert_called_once()

    async def test_fresh_claimed_timestamp_does_not_revive_expired_token(self, qr_svc, clock):
        issued = await qr_svc.issue("MED-1")
        clock.advance(minutes=6)
        outcome = await qr_svc.validate_and_consume(
            issued.token_hash, "MED-1", to_millis(clock.now),
        )
        assert outcome is ConsumeOutcome.EXPIRED


class TestPayloadExpiry:
    async def test_boundaries(self, qr_svc, clock):
        now_ms = to_millis(clock.now)
        ttl_ms = 300_000
        assert qr_svc.is_payload_expired(now_ms) is False
        assert qr_svc.is_payload_expired(now_ms - ttl_ms) is False
        assert qr_svc.is_payload_expired(now_ms - ttl_ms + 1) is False
        assert qr_svc.is_payload_expired(now_ms - ttl_ms - 1) is True


class TestConcurrentConsume:
    async def test_exactly_one_concurrent_consumer_wins(self, tmp_path, clock):
        manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'tokens.db'}")
        await manager.init()
        await manager.create_all()
        try:
            svc = QrTokenService(manager, ttl_seconds=300, clock=clock)
            for _ in range(5):
                issued = await svc.issue("MED-1")
                outcomes = await asyncio.gather(
                    svc.validate_and_consume(issued.token_hash, "MED-1"),
                    svc.validate_and_consume(issued.token_hash, "MED-1"),
                )
                assert sorted(o.value for o in outcomes) == ["ALREADY_USED", "CONSUMED"]
        finally:
            await manager.close()
