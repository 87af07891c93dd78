"""Catalogue service — manufacturer-side registration, lookup and QR issuance."""

import logging
from datetime import date
from typing import Any

from medverify_engine.common.exceptions import (
    AlreadyAttestedError,
    InvalidProductDataError,
    LedgerError,
    ProductConflictError,
    ProductNotFoundError,
)
from medverify_engine.ledger.gateway import LedgerGateway
from medverify_engine.ledger.schemas import product_metadata
from medverify_engine.qr.service import IssuedQr, QrTokenService
from medverify_engine.registry.models import ProductModel
from medverify_engine.registry.service import RegistryStore, new_product_id
from medverify_engine.verification.engine import normalize_product_id

logger = logging.getLogger(__name__)

W_REGISTERED_OFF_LEDGER = (
    "The ledger was unavailable; the product was registered without a ledger "
    "attestation and will verify as SUSPICIOUS until it is attested."
)


class CatalogueService:
    """Writes to the registry and ledger on behalf of manufacturers.

    Verification never goes through here; this is the write path plus the
    plain catalogue reads that back the ``/medicines`` routes.
    """

    def __init__(
        self,
        registry: RegistryStore,
        ledger: LedgerGateway,
        qr_tokens: QrTokenService,
    ):
        self.registry = registry
        self.ledger = ledger
        self.qr_tokens = qr_tokens

    async def register(
        self,
        name: str,
        manufacturer: str,
        batch_number: str,
        manufacture_date: date,
        expiry_date: date,
        description: str = "",
        registered_by: str = "system",
        product_id: str | None = None,
    ) -> tuple[ProductModel, list[str]]:
        """
        Register a product batch: attest on the ledger, then store it.

        The ledger goes first so that a registry record never claims an
        attestation that does not exist. If the ledger is down the record
        is still stored, with no ledger reference and a warning.

        Returns:
            (record, warnings)

        Raises:
            InvalidProductDataError: on blank fields or inverted dates
            ProductConflictError: when the product ID is already taken
            RegistryUnavailableError: when the registry cannot be written
        """
        for field_name, value in (
            ("name", name), ("manufacturer", manufacturer), ("batch_number", batch_number),
        ):
            if not value or not value.strip():
                raise InvalidProductDataError(f"{field_name} is required")
        if expiry_date <= manufacture_date:
            raise InvalidProductDataError("expiry_date must be after manufacture_date")

        product_id = normalize_product_id(product_id) if product_id else new_product_id()
        if await self.registry.get(product_id) is not None:
            raise ProductConflictError(f"Product '{product_id}' is already registered")

        name, manufacturer, batch_number = name.strip(), manufacturer.strip(), batch_number.strip()
        warnings: list[str] = []
        ledger_reference = None
        try:
            reference = await self.ledger.attest(
                product_id,
                product_metadata(
                    name, manufacturer, manufacture_date, expiry_date, batch_number,
                ),
            )
            ledger_reference = reference.transaction_hash
        except AlreadyAttestedError as exc:
            raise ProductConflictError(
                f"Product '{product_id}' is already recorded on the ledger"
            ) from exc
        except LedgerError as exc:
            logger.warning(
                "Registering %s without ledger attestation: %s", product_id, exc.message,
            )
            warnings.append(W_REGISTERED_OFF_LEDGER)

        record = await self.registry.put(ProductModel(
            product_id=product_id,
            name=name,
            manufacturer=manufacturer,
            batch_number=batch_number,
            manufacture_date=manufacture_date,
            expiry_date=expiry_date,
            description=description or "",
            registered_by=registered_by or "system",
            ledger_reference=ledger_reference,
        ))
        logger.info("Registered %s (%s, batch %s)", product_id, manufacturer, batch_number)
        return record, warnings

    async def get(self, product_id: str) -> ProductModel:
        product_id = normalize_product_id(product_id)
        record = await self.registry.get(product_id)
        if record is None:
            raise ProductNotFoundError(f"Medicine '{product_id}' not found")
        return record

    async def list_products(
        self,
        manufacturer: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ProductModel], int]:
        records = await self.registry.list_products(
            manufacturer=manufacturer, offset=offset, limit=limit,
        )
        total = await self.registry.count(manufacturer=manufacturer)
        return records, total

    async def stats(self) -> dict[str, Any]:
        """Catalogue size overall and per manufacturer."""
        by_manufacturer = await self.registry.count_by_manufacturer()
        return {
            "total_medicines": sum(by_manufacturer.values()),
            "by_manufacturer": by_manufacturer,
        }

    async def issue_qr(self, product_id: str) -> IssuedQr:
        record = await self.get(product_id)
        return await self.qr_tokens.issue(record.product_id)
