"""Registry store — the authoritative record of who registered what."""

import asyncio
import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from medverify_engine.common.database import DatabaseManager
from medverify_engine.common.exceptions import (
    ProductConflictError,
    RegistryUnavailableError,
)
from medverify_engine.registry.models import ProductModel

logger = logging.getLogger(__name__)


def new_product_id() -> str:
    """Issue a fresh product ID of the form MED-XXXXXXXX."""
    return f"MED-{uuid.uuid4().hex[:8].upper()}"


class RegistryStore:
    """Durable key-value store of product records.

    A miss is returned as ``None``. Storage failures and timeouts raise
    :class:`RegistryUnavailableError` so callers can tell "not registered"
    apart from "registry down".
    """

    def __init__(self, db: DatabaseManager, timeout: float = 5.0):
        self.db = db
        self.timeout = timeout

    async def _bounded(self, coro, operation: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Registry %s timed out after %.1fs", operation, self.timeout)
            raise RegistryUnavailableError() from exc
        except IntegrityError:
            raise
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Registry %s failed: %s", operation, exc)
            raise RegistryUnavailableError() from exc

    # ── Read ──

    async def get(self, product_id: str) -> ProductModel | None:
        return await self._bounded(self._get(product_id), "get")

    async def _get(self, product_id: str) -> ProductModel | None:
        async with self.db.get_session() as session:
            return await session.get(ProductModel, product_id)

    async def list_products(
        self,
        manufacturer: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> list[ProductModel]:
        return await self._bounded(
            self._list_products(manufacturer, offset, limit), "list",
        )

    async def _list_products(
        self, manufacturer: str | None, offset: int, limit: int,
    ) -> list[ProductModel]:
        query = select(ProductModel)
        if manufacturer:
            query = query.where(ProductModel.manufacturer == manufacturer)
        query = query.order_by(ProductModel.product_id).offset(offset).limit(limit)
        async with self.db.get_session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def count(self, manufacturer: str | None = None) -> int:
        return await self._bounded(self._count(manufacturer), "count")

    async def _count(self, manufacturer: str | None) -> int:
        query = select(func.count()).select_from(ProductModel)
        if manufacturer:
            query = query.where(ProductModel.manufacturer == manufacturer)
        async with self.db.get_session() as session:
            result = await session.execute(query)
            return result.scalar_one()

    async def count_by_manufacturer(self) -> dict[str, int]:
        """Registered product counts keyed by manufacturer."""
        return await self._bounded(self._count_by_manufacturer(), "count_by_manufacturer")

    async def _count_by_manufacturer(self) -> dict[str, int]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(ProductModel.manufacturer, func.count())
                .group_by(ProductModel.manufacturer)
                .order_by(ProductModel.manufacturer)
            )
            return {manufacturer: count for manufacturer, count in result.all()}

    # ── Write ──

    async def put(self, record: ProductModel) -> ProductModel:
        """Insert a new record. Duplicate product IDs raise ProductConflictError."""
        try:
            return await self._bounded(self._put(record), "put")
        except IntegrityError as exc:
            raise ProductConflictError(
                f"Product '{record.product_id}' is already registered"
            ) from exc

    async def _put(self, record: ProductModel) -> ProductModel:
        async with self.db.get_session() as session:
            existing = await session.get(ProductModel, record.product_id)
            if existing is not None:
                raise ProductConflictError(
                    f"Product '{record.product_id}' is already registered"
                )
            session.add(record)
            await session.flush()
        return record
