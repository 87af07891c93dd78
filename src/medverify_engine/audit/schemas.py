"""Pydantic schemas for audit API responses."""

from datetime import datetime
from typing import Any, Optional

from medverify_engine.common.schemas import CamelModel


class VerificationAttemptResponse(CamelModel):
    id: str
    product_id: str
    method: str
    status: str
    is_valid: bool
    requester_address: Optional[str] = None
    checks: dict[str, bool] = {}
    detail: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditSummary(CamelModel):
    total: int
    successful: int
    failed: int
    by_status: dict[str, int] = {}
