"""Pydantic schemas for the verification endpoints."""

from typing import Any, Optional

from pydantic import Field

from medverify_engine.common.schemas import CamelModel


class VerifyRequest(CamelModel):
    product_id: str = Field(..., min_length=1, max_length=64)


class VerifyQrRequest(CamelModel):
    qr_data: str = Field(..., min_length=1)


class ChecksResponse(CamelModel):
    database_found: bool = False
    blockchain_verified: bool = False
    not_expired: bool = False
    qr_valid: bool = False
    qr_not_used: bool = False


class VerificationResponse(CamelModel):
    is_valid: bool
    status: str
    confidence: str
    is_expired: bool = False
    medicine: Optional[dict[str, Any]] = None
    message: str
    blockchain_verified: bool = False
    checks: ChecksResponse
    warnings: list[str] = Field(default_factory=list)


class VerificationStats(CamelModel):
    total: int
    successful: int
    failed: int
