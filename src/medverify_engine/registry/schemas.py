"""Pydantic schemas for the medicine catalogue endpoints."""

from datetime import date, datetime
from typing import Optional

from pydantic import Field, model_validator

from medverify_engine.common.schemas import CamelModel


class MedicineCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=255)
    manufacturer: str = Field(..., min_length=2, max_length=255)
    batch_number: str = Field(..., min_length=1, max_length=100)
    manufacture_date: date
    expiry_date: date
    description: str = ""
    product_id: Optional[str] = Field(default=None, max_length=64)

    @model_validator(mode="after")
    def _expiry_after_manufacture(self):
        if self.expiry_date <= self.manufacture_date:
            raise ValueError("expiryDate must be after manufactureDate")
        return self


class MedicineResponse(CamelModel):
    product_id: str
    name: str
    manufacturer: str
    batch_number: str
    manufacture_date: date
    expiry_date: date
    description: str = ""
    registered_by: str
    ledger_reference: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MedicineRegistered(CamelModel):
    message: str = "Medicine registered successfully"
    medicine: MedicineResponse
    warnings: list[str] = Field(default_factory=list)


class MedicineList(CamelModel):
    count: int
    total: int
    medicines: list[MedicineResponse]


class QrCodeResponse(CamelModel):
    qr_data: str
    qr_hash: str
    product_id: str
    issued_at: datetime
    expires_at: datetime


class VerificationCounters(CamelModel):
    total: int
    successful: int
    failed: int


class CatalogueStats(CamelModel):
    total_medicines: int
    by_manufacturer: dict[str, int] = {}
    verifications: VerificationCounters
    timestamp: datetime
