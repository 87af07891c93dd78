"""Ledger API router."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from medverify_engine.common.exceptions import NotSupportedError
from medverify_engine.common.security import require_api_key
from medverify_engine.ledger.local import LocalLedger

router = APIRouter()


class LedgerChainVerification(BaseModel):
    valid: bool
    entries_checked: int
    break_at: Optional[int] = None


def _get_gateway():
    from medverify_engine.deps import get_ledger_gateway
    return get_ledger_gateway()


@router.get("/ledger/verify", response_model=LedgerChainVerification)
async def verify_ledger_chain(_=Depends(require_api_key)):
    gateway = _get_gateway()
    if not isinstance(gateway, LocalLedger):
        raise NotSupportedError(
            f"Chain verification is not available for the '{gateway.name}' ledger backend"
        )
    return LedgerChainVerification(**await gateway.verify_chain())
