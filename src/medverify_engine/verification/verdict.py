"""Verdict vocabulary: statuses, confidence grades, checks and messages.

Statuses and confidence grades are a closed, wire-visible set. Adding a
value is a breaking change for every consumer.
"""

import enum
from dataclasses import asdict, dataclass, field
from typing import Any, Optional


class VerificationStatus(str, enum.Enum):
    AUTHENTIC = "AUTHENTIC"
    COUNTERFEIT = "COUNTERFEIT"
    EXPIRED = "EXPIRED"
    SUSPICIOUS = "SUSPICIOUS"
    NOT_FOUND = "NOT_FOUND"


class Confidence(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# Existing consumers match these strings exactly.
MESSAGES: dict[VerificationStatus, str] = {
    VerificationStatus.AUTHENTIC: (
        "This medicine is genuine, verified on the ledger, and safe to use."
    ),
    VerificationStatus.EXPIRED: (
        "This medicine is authentic but has expired. Do not consume."
    ),
    VerificationStatus.COUNTERFEIT: (
        "This product is NOT registered on the ledger. This is likely a fake "
        "product. Do not purchase or consume."
    ),
    VerificationStatus.SUSPICIOUS: (
        "Unable to fully verify this medicine. Exercise caution and contact "
        "the manufacturer."
    ),
    VerificationStatus.NOT_FOUND: "This medicine is not registered in our system.",
}

QR_AUTHENTIC_MESSAGE = (
    "QR code verified. This medicine is genuine, verified on the ledger, "
    "and safe to use."
)
QR_EXPIRED_MESSAGE = "This QR code has expired. Ask the seller for a freshly generated code."
QR_NOT_REGISTERED_MESSAGE = (
    "This QR code is not registered. It is likely fake. Do not purchase or consume."
)
QR_ALREADY_USED_MESSAGE = (
    "This QR code has already been scanned. It may have been duplicated or "
    "tampered with."
)

# Warnings
W_NOT_REGISTERED = "This product is not registered. It may be counterfeit."
W_LEDGER_UNAVAILABLE = "Unable to verify this product on the ledger right now."
W_LEDGER_MISSING = "This product was not found on the ledger."
W_LEDGER_UNVERIFIED = "The ledger does not mark this product as verified."
W_LEDGER_MISMATCH = "Ledger details do not match the registered product ({fields})."
W_EXPIRED = "This medicine expired on {date}."
W_QR_EXPIRED = "QR codes are only valid for a few minutes after they are generated."
W_QR_TAMPERING = "An expired or reused QR code could indicate tampering."
W_QR_NOT_REGISTERED = "This QR code was never issued by the manufacturer."
W_QR_REPLAYED = "This QR code was already used for a verification."
W_QR_NOT_ON_LEDGER = "This QR code is not recorded on the ledger."
W_QR_LEDGER_UNAVAILABLE = "Unable to confirm this QR code on the ledger right now."


@dataclass
class VerificationChecks:
    database_found: bool = False
    blockchain_verified: bool = False
    not_expired: bool = False
    qr_valid: bool = False
    qr_not_used: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass
class Verdict:
    """Graded outcome of one verification call."""

    status: VerificationStatus
    confidence: Confidence
    message: str
    checks: VerificationChecks = field(default_factory=VerificationChecks)
    warnings: list[str] = field(default_factory=list)
    is_expired: bool = False
    medicine: Optional[dict[str, Any]] = None
    # Machine-readable reason codes, kept in the audit record.
    reasons: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.status is VerificationStatus.AUTHENTIC

    @property
    def blockchain_verified(self) -> bool:
        return self.checks.blockchain_verified

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "status": self.status.value,
            "confidence": self.confidence.value,
            "is_expired": self.is_expired,
            "medicine": self.medicine,
            "message": self.message,
            "blockchain_verified": self.blockchain_verified,
            "checks": self.checks.to_dict(),
            "warnings": list(self.warnings),
        }
