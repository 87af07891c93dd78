"""Audit log API router."""

from fastapi import APIRouter, Depends, Query

from medverify_engine.common.security import require_api_key
from medverify_engine.audit.schemas import AuditSummary, VerificationAttemptResponse

router = APIRouter()


def _get_service():
    from medverify_engine.deps import get_audit_log
    return get_audit_log()


@router.get("/audit/attempts", response_model=list[VerificationAttemptResponse])
async def list_attempts(
    product_id: str | None = Query(None, alias="productId"),
    status: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_api_key),
):
    attempts = await _get_service().list_attempts(
        product_id=product_id.strip().upper() if product_id else None,
        status=status,
        limit=limit,
        offset=offset,
    )
    return [
        VerificationAttemptResponse(
            id=a.id,
            product_id=a.product_id,
            method=a.method,
            status=a.status,
            is_valid=a.is_valid,
            requester_address=a.requester_address,
            checks=a.checks or {},
            detail=a.detail or {},
            created_at=a.created_at,
        )
        for a in attempts
    ]


@router.get("/audit/summary", response_model=AuditSummary)
async def audit_summary(_=Depends(require_api_key)):
    svc = _get_service()
    stats = await svc.stats()
    return AuditSummary(**stats, by_status=await svc.breakdown())
