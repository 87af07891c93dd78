"""Medicine catalogue API router."""

from fastapi import APIRouter, Depends, Query

from medverify_engine.common.models import utcnow
from medverify_engine.common.security import require_api_key
from medverify_engine.registry.schemas import (
    CatalogueStats,
    MedicineCreate,
    MedicineList,
    MedicineRegistered,
    MedicineResponse,
    QrCodeResponse,
    VerificationCounters,
)

router = APIRouter()


def _get_service():
    from medverify_engine.deps import get_catalogue_service
    return get_catalogue_service()


def _get_settings():
    from medverify_engine.common.config import get_settings
    return get_settings()


@router.post("/medicines/register", response_model=MedicineRegistered, status_code=201)
async def register_medicine(body: MedicineCreate, _=Depends(require_api_key)):
    svc = _get_service()
    record, warnings = await svc.register(
        body.name,
        body.manufacturer,
        body.batch_number,
        body.manufacture_date,
        body.expiry_date,
        description=body.description,
        product_id=body.product_id,
    )
    return MedicineRegistered(
        medicine=MedicineResponse.model_validate(record),
        warnings=warnings,
    )


@router.get("/medicines", response_model=MedicineList)
async def list_medicines(
    manufacturer: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    _=Depends(require_api_key),
):
    settings = _get_settings()
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    records, total = await _get_service().list_products(
        manufacturer=manufacturer, offset=offset, limit=limit,
    )
    return MedicineList(
        count=len(records),
        total=total,
        medicines=[MedicineResponse.model_validate(r) for r in records],
    )


@router.get("/medicines/stats", response_model=CatalogueStats)
async def catalogue_stats(_=Depends(require_api_key)):
    from medverify_engine.deps import get_audit_log

    stats = await _get_service().stats()
    return CatalogueStats(
        total_medicines=stats["total_medicines"],
        by_manufacturer=stats["by_manufacturer"],
        verifications=VerificationCounters(**await get_audit_log().stats()),
        timestamp=utcnow(),
    )


@router.get("/medicines/{product_id}", response_model=MedicineResponse)
async def get_medicine(product_id: str):
    record = await _get_service().get(product_id)
    return MedicineResponse.model_validate(record)


@router.get("/medicines/{product_id}/qr", response_model=QrCodeResponse)
async def issue_qr(product_id: str, _=Depends(require_api_key)):
    issued = await _get_service().issue_qr(product_id)
    return QrCodeResponse(
        qr_data=issued.qr_data,
        qr_hash=issued.token_hash,
        product_id=issued.product_id,
        issued_at=issued.issued_at,
        expires_at=issued.expires_at,
    )
