"""SQLAlchemy model for registered medicine batches."""

from datetime import date

from sqlalchemy import Date, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from medverify_engine.common.models import Base, TimestampMixin


class ProductModel(Base, TimestampMixin):
    __tablename__ = "medicines"

    product_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    manufacturer: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    manufacture_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    registered_by: Mapped[str] = mapped_column(String(255), default="system")
    # Ledger transaction hash; NULL until the ledger write succeeds.
    ledger_reference: Mapped[str | None] = mapped_column(String(66), nullable=True)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "manufacturer": self.manufacturer,
            "batch_number": self.batch_number,
            "manufacture_date": self.manufacture_date.isoformat(),
            "expiry_date": self.expiry_date.isoformat(),
            "description": self.description or "",
            "registered_by": self.registered_by,
            "ledger_reference": self.ledger_reference,
        }
