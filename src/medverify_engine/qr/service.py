"""QR token service — issue, validate and consume single-use tokens."""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import update

from medverify_engine.common.database import DatabaseManager
from medverify_engine.common.exceptions import InvalidQrFormatError, LedgerError
from medverify_engine.common.models import as_utc, utcnow
from medverify_engine.ledger.gateway import LedgerGateway
from medverify_engine.qr.codec import (
    compute_token_hash,
    encode_payload,
    is_valid_hash,
    new_nonce,
)
from medverify_engine.qr.models import QrTokenModel

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ConsumeOutcome(str, enum.Enum):
    CONSUMED = "CONSUMED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_USED = "ALREADY_USED"
    EXPIRED = "EXPIRED"


@dataclass
class IssuedQr:
    """A freshly issued token plus the string to render into the QR image."""

    token_hash: str
    product_id: str
    issued_at: datetime
    expires_at: datetime
    qr_data: str


def to_millis(value: datetime) -> int:
    return (as_utc(value) - _EPOCH) // timedelta(milliseconds=1)


def from_millis(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


class QrTokenService:
    """Owns the QrToken lifecycle: created unused, flipped to used at most once."""

    def __init__(
        self,
        db: DatabaseManager,
        ledger: LedgerGateway | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ):
        self.db = db
        self.ledger = ledger
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or utcnow
        self._pending: set[asyncio.Task] = set()

    def now(self) -> datetime:
        return as_utc(self._clock())

    def is_payload_expired(self, issued_at_ms: int) -> bool:
        """Server-clock check of a payload's embedded issue time against the TTL."""
        age_ms = to_millis(self.now()) - issued_at_ms
        return age_ms > self.ttl.total_seconds() * 1000

    # ── Issue ──

    async def issue(self, product_id: str) -> IssuedQr:
        issued_ms = to_millis(self.now())
        issued_at = from_millis(issued_ms)
        expires_at = issued_at + self.ttl
        token_hash = compute_token_hash(product_id, new_nonce(), issued_ms)

        async with self.db.get_session() as session:
            session.add(QrTokenModel(
                token_hash=token_hash,
                product_id=product_id,
                issued_at=issued_at,
                expires_at=expires_at,
                used=False,
            ))

        self._schedule_attestation(token_hash, product_id)
        logger.info("QR token issued for %s (hash %s…)", product_id, token_hash[:12])

        return IssuedQr(
            token_hash=token_hash,
            product_id=product_id,
            issued_at=issued_at,
            expires_at=expires_at,
            qr_data=encode_payload(token_hash, product_id, issued_ms),
        )

    def _schedule_attestation(self, token_hash: str, product_id: str) -> None:
        """Fire-and-forget ledger write; the caller never waits on the ledger."""
        if self.ledger is None:
            return
        task = asyncio.create_task(self._attest_token(token_hash, product_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _attest_token(self, token_hash: str, product_id: str) -> None:
        try:
            await self.ledger.attest_token(token_hash, product_id)
        except LedgerError as exc:
            logger.warning(
                "Ledger attestation of QR %s… failed: %s", token_hash[:12], exc.message,
            )
        except Exception:
            logger.exception("Unexpected error attesting QR %s…", token_hash[:12])

    async def wait_for_attestations(self) -> None:
        """Wait for in-flight ledger writes (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ── Read ──

    async def get(self, token_hash: str) -> QrTokenModel | None:
        async with self.db.get_session() as session:
            return await session.get(QrTokenModel, token_hash)

    # ── Consume ──

    async def validate_and_consume(
        self,
        token_hash: str,
        product_id: str,
        claimed_timestamp: int | None = None,
    ) -> ConsumeOutcome:
        """
        Check a token and, if it is live, mark it used.

        Expiry comes from the stored ``expires_at`` and the server clock; a
        token is expired strictly after ``expires_at``. The used flag flips
        through one conditional UPDATE, so of two concurrent calls for the
        same hash exactly one sees CONSUMED and the other ALREADY_USED.
        Failed checks leave the token untouched.

        Raises:
            InvalidQrFormatError: if token_hash is not 64 lowercase hex chars
        """
        if not is_valid_hash(token_hash):
            raise InvalidQrFormatError("Invalid QR hash format")

        now = self.now()
        async with self.db.get_session() as session:
            token = await session.get(QrTokenModel, token_hash)
            if token is None or token.product_id != product_id:
                return ConsumeOutcome.NOT_FOUND

            if claimed_timestamp is not None and claimed_timestamp != to_millis(token.issued_at):
                logger.warning(
                    "QR %s… presented with a timestamp that differs from its issue time",
                    token_hash[:12],
                )

            if token.used:
                return ConsumeOutcome.ALREADY_USED
            if now > as_utc(token.expires_at):
                return ConsumeOutcome.EXPIRED

            result = await session.execute(
                update(QrTokenModel)
                .where(
                    QrTokenModel.token_hash == token_hash,
                    QrTokenModel.used == False,  # noqa: E712
                )
                .values(used=True, used_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return ConsumeOutcome.ALREADY_USED

        return ConsumeOutcome.CONSUMED
