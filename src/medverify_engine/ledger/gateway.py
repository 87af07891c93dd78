"""Ledger gateway contract.

The ledger is treated as an untrusted, possibly slow remote dependency.
Every call is bounded by a timeout; timeouts and transport errors raise
:class:`LedgerUnavailableError`, which is never the same thing as a miss.
"""

from abc import ABC, abstractmethod
from typing import Any

from medverify_engine.ledger.schemas import LedgerAttestation, LedgerReference

KIND_PRODUCT = "product"
KIND_QR = "qr"


class LedgerGateway(ABC):
    """Verifiable-write / verifiable-read access to the ledger."""

    name = "abstract"

    @abstractmethod
    async def attest(self, product_id: str, metadata: dict[str, Any]) -> LedgerReference:
        """Record a product. Raises AlreadyAttestedError for a repeat product_id."""

    @abstractmethod
    async def query(self, product_id: str) -> LedgerAttestation | None:
        """Return the attestation, or None when the ledger has never seen the product."""

    @abstractmethod
    async def attest_token(self, token_hash: str, product_id: str) -> LedgerReference:
        """Record a QR token hash so later scans can prove it was issued here."""

    @abstractmethod
    async def verify_token(self, token_hash: str) -> bool:
        """True when the token hash was attested."""

    async def close(self) -> None:
        return None
