#!/usr/bin/env python3
"""Seed the registry and ledger with the sample medicine catalogue.

Usage:
    python -m scripts.seed_medicines
    # or from project root:
    python scripts/seed_medicines.py
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from medverify_engine.common.config import get_settings
from medverify_engine.common.database import DatabaseManager
from medverify_engine.deps import build_ledger_gateway, get_ledger_db
from medverify_engine.ledger.models import LedgerEntryModel
from medverify_engine.qr.service import QrTokenService
from medverify_engine.registry.catalogue import CatalogueService
from medverify_engine.registry.seeds import SAMPLE_MEDICINES, seed_catalogue
from medverify_engine.registry.service import RegistryStore


async def seed_medicines() -> None:
    settings = get_settings()
    db = DatabaseManager(settings.db_url)
    await db.init()
    await db.create_all()

    if settings.ledger_backend == "local":
        ledger_db = get_ledger_db()
        await ledger_db.init()
        await ledger_db.create_all(tables=[LedgerEntryModel.__table__])
    ledger = build_ledger_gateway(settings)

    catalogue = CatalogueService(
        RegistryStore(db, timeout=settings.registry_timeout),
        ledger,
        QrTokenService(db, ledger=ledger, ttl_seconds=settings.qr_ttl_seconds),
    )
    created, skipped = await seed_catalogue(catalogue)
    for product_id in created:
        print(f"  [created] {product_id}")
    for product_id in skipped:
        print(f"  [skip] {product_id} already exists")

    await ledger.close()
    if settings.ledger_backend == "local":
        await get_ledger_db().close()
    await db.close()
    print(f"\nDone. {len(created)} of {len(SAMPLE_MEDICINES)} medicines seeded.")


if __name__ == "__main__":
    asyncio.run(seed_medicines())
