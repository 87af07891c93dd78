"""Local ledger — an append-only, hash-chained, HMAC-signed entry log.

Each entry commits to the previous one through ``prev_hash``, so editing
or deleting any historical row breaks every later link. The ledger lives
in its own database, outside the registry's control.
"""

import asyncio
import hashlib
import hmac as hmac_mod
import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from medverify_engine.common.database import DatabaseManager
from medverify_engine.common.exceptions import (
    AlreadyAttestedError,
    LedgerUnavailableError,
)
from medverify_engine.ledger.gateway import KIND_PRODUCT, KIND_QR, LedgerGateway
from medverify_engine.ledger.models import LedgerEntryModel
from medverify_engine.ledger.schemas import (
    LedgerAttestation,
    LedgerReference,
    attestation_from_metadata,
)

logger = logging.getLogger(__name__)


class LocalLedger(LedgerGateway):
    """Ledger gateway backed by a hash-chained table."""

    name = "local"

    def __init__(self, db: DatabaseManager, hmac_key: str, timeout: float = 5.0):
        self.db = db
        self.hmac_key = hmac_key
        self.timeout = timeout
        self._append_lock = asyncio.Lock()

    async def _bounded(self, coro, operation: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Ledger %s timed out after %.1fs", operation, self.timeout)
            raise LedgerUnavailableError(f"Ledger {operation} timed out") from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Ledger %s failed: %s", operation, exc)
            raise LedgerUnavailableError(f"Ledger {operation} failed") from exc

    # ── Write ──

    async def attest(self, product_id: str, metadata: dict[str, Any]) -> LedgerReference:
        payload = {"product_id": product_id, "is_verified": True, **metadata}
        return await self._bounded(
            self._append(KIND_PRODUCT, product_id, payload), "attest",
        )

    async def attest_token(self, token_hash: str, product_id: str) -> LedgerReference:
        payload = {"token_hash": token_hash, "product_id": product_id}
        return await self._bounded(
            self._append(KIND_QR, token_hash, payload), "attest_token",
        )

    async def _append(
        self, kind: str, subject: str, payload: dict[str, Any],
    ) -> LedgerReference:
        async with self._append_lock:
            try:
                async with self.db.get_session() as session:
                    if await self._get_entry(session, kind, subject) is not None:
                        raise AlreadyAttestedError(
                            f"{kind} '{subject}' is already attested"
                        )

                    head = await self._get_head(session)
                    sequence = head.sequence + 1 if head else 1
                    prev_hash = head.entry_hash if head else None

                    entry_hash = self._compute_entry_hash(
                        sequence, kind, subject, payload, prev_hash,
                    )
                    entry = LedgerEntryModel(
                        sequence=sequence,
                        kind=kind,
                        subject=subject,
                        payload=payload,
                        prev_hash=prev_hash,
                        entry_hash=entry_hash,
                        signature=self._sign(entry_hash),
                    )
                    session.add(entry)
                    await session.flush()
            except IntegrityError as exc:
                raise AlreadyAttestedError(
                    f"{kind} '{subject}' is already attested"
                ) from exc

        logger.info("Ledger entry #%d appended: %s %s", sequence, kind, subject)
        return LedgerReference(transaction_hash=entry_hash, block_number=sequence)

    # ── Read ──

    async def query(self, product_id: str) -> LedgerAttestation | None:
        return await self._bounded(self._query(product_id), "query")

    async def _query(self, product_id: str) -> LedgerAttestation | None:
        async with self.db.get_session() as session:
            entry = await self._get_entry(session, KIND_PRODUCT, product_id)
            if entry is None:
                return None
            payload = dict(entry.payload or {})
            return attestation_from_metadata(
                payload,
                is_verified=payload.get("is_verified", True),
                reference=LedgerReference(entry.entry_hash, entry.sequence),
            )

    async def verify_token(self, token_hash: str) -> bool:
        return await self._bounded(self._verify_token(token_hash), "verify_token")

    async def _verify_token(self, token_hash: str) -> bool:
        async with self.db.get_session() as session:
            entry = await self._get_entry(session, KIND_QR, token_hash)
            return entry is not None

    # ── Verify ──

    async def verify_chain(self) -> dict[str, Any]:
        """Walk the chain oldest→newest, verify linkage, hashes and signatures."""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(LedgerEntryModel).order_by(LedgerEntryModel.sequence.asc())
            )
            entries = list(result.scalars().all())

        prev_hash = None
        for checked, entry in enumerate(entries):
            expected_hash = self._compute_entry_hash(
                entry.sequence, entry.kind, entry.subject, entry.payload, entry.prev_hash,
            )
            if (
                entry.prev_hash != prev_hash
                or entry.entry_hash != expected_hash
                or not hmac_mod.compare_digest(self._sign(entry.entry_hash), entry.signature)
            ):
                return {
                    "valid": False,
                    "entries_checked": checked,
                    "break_at": entry.sequence,
                }
            prev_hash = entry.entry_hash

        return {"valid": True, "entries_checked": len(entries), "break_at": None}

    # ── Internal helpers ──

    @staticmethod
    async def _get_entry(session, kind: str, subject: str) -> LedgerEntryModel | None:
        result = await session.execute(
            select(LedgerEntryModel).where(
                LedgerEntryModel.kind == kind,
                LedgerEntryModel.subject == subject,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _get_head(session) -> LedgerEntryModel | None:
        result = await session.execute(
            select(LedgerEntryModel)
            .order_by(LedgerEntryModel.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _compute_entry_hash(
        sequence: int,
        kind: str,
        subject: str,
        payload: dict[str, Any],
        prev_hash: str | None,
    ) -> str:
        """SHA-256 of canonical JSON of the entry fields."""
        canonical = json.dumps(
            {
                "sequence": sequence,
                "kind": kind,
                "subject": subject,
                "payload": payload,
                "prev_hash": prev_hash,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode()).hexdigest()

    def _sign(self, entry_hash: str) -> str:
        return hmac_mod.new(
            self.hmac_key.encode(), entry_hash.encode(), hashlib.sha256,
        ).hexdigest()
