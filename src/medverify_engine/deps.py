"""Dependency injection singletons for MedVerify-Engine."""

from medverify_engine.common.config import MedVerifySettings, get_settings
from medverify_engine.common.database import DatabaseManager
from medverify_engine.audit.service import AuditLog
from medverify_engine.ledger.gateway import LedgerGateway
from medverify_engine.ledger.http import HttpLedgerGateway
from medverify_engine.ledger.local import LocalLedger
from medverify_engine.qr.service import QrTokenService
from medverify_engine.registry.catalogue import CatalogueService
from medverify_engine.registry.service import RegistryStore
from medverify_engine.verification.engine import VerificationEngine

_db: DatabaseManager | None = None
_ledger_db: DatabaseManager | None = None
_ledger: LedgerGateway | None = None
_registry: RegistryStore | None = None
_qr_tokens: QrTokenService | None = None
_audit: AuditLog | None = None
_engine: VerificationEngine | None = None
_catalogue: CatalogueService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings().db_url)
    return _db


def get_ledger_db() -> DatabaseManager:
    global _ledger_db
    if _ledger_db is None:
        _ledger_db = DatabaseManager(get_settings().ledger_db_url)
    return _ledger_db


def build_ledger_gateway(settings: MedVerifySettings) -> LedgerGateway:
    if settings.ledger_backend == "http":
        return HttpLedgerGateway(
            settings.ledger_url,
            api_token=settings.ledger_api_token,
            timeout=settings.ledger_timeout,
        )
    return LocalLedger(
        get_ledger_db(),
        settings.ledger_hmac_key,
        timeout=settings.ledger_timeout,
    )


def get_ledger_gateway() -> LedgerGateway:
    global _ledger
    if _ledger is None:
        _ledger = build_ledger_gateway(get_settings())
    return _ledger


def get_registry() -> RegistryStore:
    global _registry
    if _registry is None:
        _registry = RegistryStore(get_db(), timeout=get_settings().registry_timeout)
    return _registry


def get_qr_token_service() -> QrTokenService:
    global _qr_tokens
    if _qr_tokens is None:
        _qr_tokens = QrTokenService(
            get_db(),
            ledger=get_ledger_gateway(),
            ttl_seconds=get_settings().qr_ttl_seconds,
        )
    return _qr_tokens


def get_audit_log() -> AuditLog:
    global _audit
    if _audit is None:
        _audit = AuditLog(get_db())
    return _audit


def get_verification_engine() -> VerificationEngine:
    global _engine
    if _engine is None:
        _engine = VerificationEngine(
            get_registry(),
            get_ledger_gateway(),
            get_qr_token_service(),
            get_audit_log(),
        )
    return _engine


def get_catalogue_service() -> CatalogueService:
    global _catalogue
    if _catalogue is None:
        _catalogue = CatalogueService(
            get_registry(), get_ledger_gateway(), get_qr_token_service(),
        )
    return _catalogue


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _ledger_db, _ledger, _registry, _qr_tokens, _audit, _engine, _catalogue
    _db = None
    _ledger_db = None
    _ledger = None
    _registry = None
    _qr_tokens = None
    _audit = None
    _engine = None
    _catalogue = None
