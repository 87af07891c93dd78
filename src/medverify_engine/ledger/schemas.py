"""Value types returned by the ledger gateway."""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Optional


@dataclass(frozen=True)
class LedgerReference:
    """Handle correlating a registry record or QR token with its ledger entry."""

    transaction_hash: str
    block_number: int


@dataclass(frozen=True)
class LedgerAttestation:
    """The ledger's independent view of a product."""

    exists: bool
    is_verified: bool
    name: str
    manufacturer: str
    manufacture_date: Optional[date]
    expiry_date: Optional[date]
    reference: Optional[LedgerReference] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for field in ("manufacture_date", "expiry_date"):
            if data[field] is not None:
                data[field] = data[field].isoformat()
        return data


def product_metadata(
    name: str,
    manufacturer: str,
    manufacture_date: date,
    expiry_date: date,
    batch_number: str = "",
) -> dict[str, Any]:
    """Canonical metadata written to the ledger at registration."""
    return {
        "name": name,
        "manufacturer": manufacturer,
        "batch_number": batch_number,
        "manufacture_date": manufacture_date.isoformat(),
        "expiry_date": expiry_date.isoformat(),
    }


def attestation_from_metadata(
    metadata: dict[str, Any],
    is_verified: bool = True,
    reference: LedgerReference | None = None,
) -> LedgerAttestation:
    def _date(value: Any) -> Optional[date]:
        if not value:
            return None
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value)[:10])

    return LedgerAttestation(
        exists=True,
        is_verified=bool(is_verified),
        name=str(metadata.get("name", "")),
        manufacturer=str(metadata.get("manufacturer", "")),
        manufacture_date=_date(metadata.get("manufacture_date")),
        expiry_date=_date(metadata.get("expiry_date")),
        reference=reference,
    )
