"""SQLAlchemy model for the verification attempt log."""

from sqlalchemy import Boolean, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from medverify_engine.common.models import Base, TimestampMixin, generate_uuid


class VerificationAttemptModel(Base, TimestampMixin):
    __tablename__ = "verification_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    method: Mapped[str] = mapped_column(String(10), nullable=False, default="direct")
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requester_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    checks: Mapped[dict] = mapped_column(JSON, default=dict)
    detail: Mapped[dict] = mapped_column(JSON, default=dict)
