"""Audit log — append-only record of every verification attempt."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select

from medverify_engine.common.database import DatabaseManager
from medverify_engine.common.models import utcnow
from medverify_engine.audit.models import VerificationAttemptModel

logger = logging.getLogger(__name__)


@dataclass
class VerificationAttempt:
    """One verification call, successful or not."""

    product_id: str
    status: str
    is_valid: bool
    method: str = "direct"
    requester_address: str | None = None
    checks: dict[str, bool] = field(default_factory=dict)
    detail: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


class AuditLog:
    """Write-only log of verification attempts plus read-side counters.

    ``append`` is best-effort: the verdict never depends on it. A failed
    write is reported through operational logging and otherwise dropped.
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    # ── Write ──

    async def append(self, attempt: VerificationAttempt) -> None:
        try:
            async with self.db.get_session() as session:
                session.add(VerificationAttemptModel(
                    product_id=attempt.product_id[:64],
                    method=attempt.method,
                    status=attempt.status,
                    is_valid=attempt.is_valid,
                    requester_address=attempt.requester_address,
                    checks=attempt.checks,
                    detail=attempt.detail,
                    created_at=attempt.timestamp,
                ))
        except Exception:
            logger.exception(
                "Failed to record verification attempt for %s (status %s)",
                attempt.product_id, attempt.status,
            )

    # ── Read ──

    async def stats(self) -> dict[str, int]:
        """Aggregate counters: total, successful (valid) and failed attempts."""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(
                    func.count(VerificationAttemptModel.id),
                    func.coalesce(
                        func.sum(case((VerificationAttemptModel.is_valid == True, 1), else_=0)),  # noqa: E712
                        0,
                    ),
                )
            )
            total, successful = result.one()
            total, successful = int(total), int(successful)
        return {"total": total, "successful": successful, "failed": total - successful}

    async def breakdown(self) -> dict[str, int]:
        """Attempt counts per verdict status."""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(VerificationAttemptModel.status, func.count())
                .group_by(VerificationAttemptModel.status)
            )
            return {status: count for status, count in result.all()}

    async def list_attempts(
        self,
        product_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[VerificationAttemptModel]:
        """Paginated attempt list, newest first."""
        query = select(VerificationAttemptModel)
        if product_id:
            query = query.where(VerificationAttemptModel.product_id == product_id)
        if status:
            query = query.where(VerificationAttemptModel.status == status)
        query = (
            query.order_by(VerificationAttemptModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        async with self.db.get_session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
