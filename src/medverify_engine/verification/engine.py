"""Verification engine — turns registry, ledger and QR signals into a verdict.

This is the only place where component outcomes are translated into the
five-state verdict vocabulary. Expected negative outcomes (unregistered
product, ledger outage, replayed or expired QR) become a status plus
warnings; only malformed input and registry outages raise.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from medverify_engine.audit.service import AuditLog, VerificationAttempt
from medverify_engine.common.exceptions import (
    InvalidProductIdError,
    InvalidQrFormatError,
    LedgerError,
    RegistryUnavailableError,
)
from medverify_engine.common.models import as_utc, utcnow
from medverify_engine.ledger.gateway import LedgerGateway
from medverify_engine.ledger.schemas import LedgerAttestation
from medverify_engine.qr.codec import is_valid_hash, parse_payload
from medverify_engine.qr.service import ConsumeOutcome, QrTokenService
from medverify_engine.registry.models import ProductModel
from medverify_engine.registry.service import RegistryStore
from medverify_engine.verification.verdict import (
    MESSAGES,
    QR_ALREADY_USED_MESSAGE,
    QR_AUTHENTIC_MESSAGE,
    QR_EXPIRED_MESSAGE,
    QR_NOT_REGISTERED_MESSAGE,
    W_EXPIRED,
    W_LEDGER_MISMATCH,
    W_LEDGER_MISSING,
    W_LEDGER_UNAVAILABLE,
    W_LEDGER_UNVERIFIED,
    W_NOT_REGISTERED,
    W_QR_EXPIRED,
    W_QR_LEDGER_UNAVAILABLE,
    W_QR_NOT_ON_LEDGER,
    W_QR_NOT_REGISTERED,
    W_QR_REPLAYED,
    W_QR_TAMPERING,
    Confidence,
    Verdict,
    VerificationChecks,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

MAX_PRODUCT_ID_LEN = 64
METHOD_DIRECT = "direct"
METHOD_QR = "qr"


def normalize_product_id(product_id: Any) -> str:
    """Strip and upper-case a typed or scanned product ID."""
    if not isinstance(product_id, str) or not product_id.strip():
        raise InvalidProductIdError()
    normalized = product_id.strip().upper()
    if len(normalized) > MAX_PRODUCT_ID_LEN:
        raise InvalidProductIdError(
            f"Product ID must be at most {MAX_PRODUCT_ID_LEN} characters"
        )
    return normalized


class VerificationEngine:
    """Orchestrates the registry, ledger gateway, QR tokens and audit log.

    Holds no mutable state of its own; every collaborator is injected.
    """

    def __init__(
        self,
        registry: RegistryStore,
        ledger: LedgerGateway,
        qr_tokens: QrTokenService,
        audit: AuditLog,
        clock: Callable[[], datetime] | None = None,
    ):
        self.registry = registry
        self.ledger = ledger
        self.qr_tokens = qr_tokens
        self.audit = audit
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return as_utc(self._clock())

    # ── Direct lookup ──

    async def verify_by_product_id(
        self, product_id: str, requester_address: str | None = None,
    ) -> Verdict:
        product_id = normalize_product_id(product_id)
        try:
            verdict = await self._evaluate_product(product_id)
        except RegistryUnavailableError:
            await self._record_error(product_id, METHOD_DIRECT, requester_address)
            raise

        await self._record(product_id, verdict, METHOD_DIRECT, requester_address)
        logger.info("Verified %s: %s", product_id, verdict.status.value)
        return verdict

    # ── QR scan ──

    async def verify_by_qr(
        self, qr_data: str, requester_address: str | None = None,
    ) -> Verdict:
        payload = parse_payload(qr_data)
        if not is_valid_hash(payload.token_hash):
            raise InvalidQrFormatError("Invalid QR hash format")
        try:
            product_id = normalize_product_id(payload.product_id)
        except InvalidProductIdError as exc:
            raise InvalidQrFormatError(f"Invalid QR product ID: {exc.message}") from exc

        detail: dict[str, Any] = {"token_hash": payload.token_hash}
        if payload.legacy:
            detail["legacy_payload"] = True

        # Replay, expiry and tamper signals are decided before anything
        # about the product itself.
        if self.qr_tokens.is_payload_expired(payload.timestamp):
            verdict = self._qr_rejection(
                VerificationStatus.SUSPICIOUS, Confidence.MEDIUM, QR_EXPIRED_MESSAGE,
                [W_QR_EXPIRED, W_QR_TAMPERING], "qr_expired",
            )
            return await self._finish_qr(product_id, verdict, requester_address, detail)

        outcome = await self.qr_tokens.validate_and_consume(
            payload.token_hash, product_id, payload.timestamp,
        )
        if outcome is ConsumeOutcome.NOT_FOUND:
            verdict = self._qr_rejection(
                VerificationStatus.COUNTERFEIT, Confidence.HIGH, QR_NOT_REGISTERED_MESSAGE,
                [W_QR_NOT_REGISTERED], "qr_not_found",
            )
            return await self._finish_qr(product_id, verdict, requester_address, detail)
        if outcome is ConsumeOutcome.ALREADY_USED:
            verdict = self._qr_rejection(
                VerificationStatus.SUSPICIOUS, Confidence.MEDIUM, QR_ALREADY_USED_MESSAGE,
                [W_QR_REPLAYED, W_QR_TAMPERING], "qr_already_used",
            )
            verdict.checks.qr_valid = True
            return await self._finish_qr(product_id, verdict, requester_address, detail)
        if outcome is ConsumeOutcome.EXPIRED:
            verdict = self._qr_rejection(
                VerificationStatus.SUSPICIOUS, Confidence.MEDIUM, QR_EXPIRED_MESSAGE,
                [W_QR_EXPIRED, W_QR_TAMPERING], "qr_expired",
            )
            return await self._finish_qr(product_id, verdict, requester_address, detail)

        # Consumed locally; the ledger must agree the token was issued.
        try:
            on_ledger: bool | None = await self.ledger.verify_token(payload.token_hash)
        except LedgerError as exc:
            logger.warning("Ledger QR check for %s failed: %s", product_id, exc.message)
            on_ledger = None

        if on_ledger is False:
            verdict = self._qr_rejection(
                VerificationStatus.COUNTERFEIT, Confidence.HIGH,
                MESSAGES[VerificationStatus.COUNTERFEIT],
                [W_QR_NOT_ON_LEDGER], "qr_not_on_ledger",
            )
            verdict.checks.qr_not_used = True
            return await self._finish_qr(product_id, verdict, requester_address, detail)

        try:
            verdict = await self._evaluate_product(product_id)
        except RegistryUnavailableError:
            await self._record_error(product_id, METHOD_QR, requester_address, detail)
            raise

        verdict.checks.qr_valid = True
        verdict.checks.qr_not_used = True
        if on_ledger is None:
            verdict.warnings.append(W_QR_LEDGER_UNAVAILABLE)
            verdict.reasons.append("qr_ledger_unavailable")
            if verdict.status is VerificationStatus.AUTHENTIC:
                verdict.status = VerificationStatus.SUSPICIOUS
                verdict.confidence = Confidence.LOW
                verdict.message = MESSAGES[VerificationStatus.SUSPICIOUS]
        elif verdict.status is VerificationStatus.AUTHENTIC:
            verdict.message = QR_AUTHENTIC_MESSAGE

        return await self._finish_qr(product_id, verdict, requester_address, detail)

    async def _finish_qr(
        self,
        product_id: str,
        verdict: Verdict,
        requester_address: str | None,
        detail: dict[str, Any],
    ) -> Verdict:
        await self._record(product_id, verdict, METHOD_QR, requester_address, detail)
        logger.info("Verified QR for %s: %s", product_id, verdict.status.value)
        return verdict

    @staticmethod
    def _qr_rejection(
        status: VerificationStatus,
        confidence: Confidence,
        message: str,
        warnings: list[str],
        reason: str,
    ) -> Verdict:
        return Verdict(
            status=status,
            confidence=confidence,
            message=message,
            warnings=list(warnings),
            reasons=[reason],
        )

    # ── Decision ──

    async def _evaluate_product(self, product_id: str) -> Verdict:
        """Registry + ledger + expiry decision table, without auditing."""
        record, (attestation, ledger_available) = await asyncio.gather(
            self.registry.get(product_id),
            self._query_ledger(product_id),
        )

        checks = VerificationChecks()
        if record is None:
            return Verdict(
                status=VerificationStatus.NOT_FOUND,
                confidence=Confidence.HIGH,
                message=MESSAGES[VerificationStatus.NOT_FOUND],
                checks=checks,
                warnings=[W_NOT_REGISTERED],
                reasons=["not_registered"],
            )
        checks.database_found = True

        warnings: list[str] = []
        reasons: list[str] = []
        if not ledger_available:
            warnings.append(W_LEDGER_UNAVAILABLE)
            reasons.append("ledger_unavailable")
        elif attestation is None or not attestation.exists:
            warnings.append(W_LEDGER_MISSING)
            reasons.append("ledger_not_found")
        elif not attestation.is_verified:
            warnings.append(W_LEDGER_UNVERIFIED)
            reasons.append("ledger_unverified")
        else:
            mismatched = self._diverging_fields(record, attestation)
            if mismatched:
                warnings.append(W_LEDGER_MISMATCH.format(fields=", ".join(mismatched)))
                reasons.append("ledger_mismatch")
            else:
                checks.blockchain_verified = True

        is_expired = self.now().date() > record.expiry_date
        checks.not_expired = not is_expired
        if is_expired:
            warnings.append(W_EXPIRED.format(date=record.expiry_date.isoformat()))
            reasons.append("expired")

        if checks.blockchain_verified and checks.not_expired:
            status, confidence = VerificationStatus.AUTHENTIC, Confidence.HIGH
        elif checks.blockchain_verified:
            status, confidence = VerificationStatus.EXPIRED, Confidence.HIGH
        else:
            status, confidence = VerificationStatus.SUSPICIOUS, Confidence.MEDIUM

        medicine = record.to_dict()
        medicine["blockchain"] = attestation.to_dict() if attestation else None

        return Verdict(
            status=status,
            confidence=confidence,
            message=MESSAGES[status],
            checks=checks,
            warnings=warnings,
            is_expired=is_expired,
            medicine=medicine,
            reasons=reasons,
        )

    async def _query_ledger(
        self, product_id: str,
    ) -> tuple[LedgerAttestation | None, bool]:
        """Returns (attestation, ledger_available); an outage is not a miss."""
        try:
            return await self.ledger.query(product_id), True
        except LedgerError as exc:
            logger.warning("Ledger query for %s failed: %s", product_id, exc.message)
            return None, False

    @staticmethod
    def _diverging_fields(record: ProductModel, attestation: LedgerAttestation) -> list[str]:
        mismatched = []
        if attestation.name and attestation.name != record.name:
            mismatched.append("name")
        if attestation.manufacturer and attestation.manufacturer != record.manufacturer:
            mismatched.append("manufacturer")
        if attestation.manufacture_date and attestation.manufacture_date != record.manufacture_date:
            mismatched.append("manufacture_date")
        if attestation.expiry_date and attestation.expiry_date != record.expiry_date:
            mismatched.append("expiry_date")
        return mismatched

    # ── Audit ──

    async def _record(
        self,
        product_id: str,
        verdict: Verdict,
        method: str,
        requester_address: str | None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        await self.audit.append(VerificationAttempt(
            product_id=product_id,
            status=verdict.status.value,
            is_valid=verdict.is_valid,
            method=method,
            requester_address=requester_address,
            checks=verdict.checks.to_dict(),
            detail={**(detail or {}), "reasons": list(verdict.reasons)},
            timestamp=self.now(),
        ))

    async def _record_error(
        self,
        product_id: str,
        method: str,
        requester_address: str | None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        await self.audit.append(VerificationAttempt(
            product_id=product_id,
            status="ERROR",
            is_valid=False,
            method=method,
            requester_address=requester_address,
            detail={**(detail or {}), "reasons": ["registry_unavailable"]},
            timestamp=self.now(),
        ))
