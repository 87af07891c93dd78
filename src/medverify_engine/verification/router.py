"""Verification API router."""

from fastapi import APIRouter, Request

from medverify_engine.verification.schemas import (
    VerificationResponse,
    VerificationStats,
    VerifyQrRequest,
    VerifyRequest,
)

router = APIRouter()


def _get_engine():
    from medverify_engine.deps import get_verification_engine
    return get_verification_engine()


def _get_audit():
    from medverify_engine.deps import get_audit_log
    return get_audit_log()


def _requester(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("/verify", response_model=VerificationResponse)
async def verify_product(body: VerifyRequest, request: Request):
    engine = _get_engine()
    verdict = await engine.verify_by_product_id(
        body.product_id, requester_address=_requester(request),
    )
    return VerificationResponse(**verdict.to_dict())


@router.post("/verify/qr", response_model=VerificationResponse)
async def verify_qr(body: VerifyQrRequest, request: Request):
    engine = _get_engine()
    verdict = await engine.verify_by_qr(
        body.qr_data, requester_address=_requester(request),
    )
    return VerificationResponse(**verdict.to_dict())


@router.get("/verify/logs", response_model=VerificationStats)
async def verification_stats():
    stats = await _get_audit().stats()
    return VerificationStats(**stats)
