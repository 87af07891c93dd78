"""Async database manager for MedVerify-Engine."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from medverify_engine.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import medverify_engine.registry.models  # noqa: F401
import medverify_engine.qr.models  # noqa: F401
import medverify_engine.audit.models  # noqa: F401
import medverify_engine.ledger.models  # noqa: F401


class DatabaseManager:
    """Manages a single async database engine.

    The registry, QR tokens and audit log share the main database; the
    local ledger gets a manager of its own pointed at ``ledger_db_url``.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        if self.engine is not None:
            return
        self.engine = create_async_engine(self.url, echo=False)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self, tables: list | None = None) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=tables)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
