"""MedVerify-Engine configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "ledger_hmac_key": "insecure-ledger-key-change-me",
    "api_key": "insecure-admin-key-change-me",
}


class MedVerifySettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MEDVERIFY_")

    environment: str = "development"
    log_level: str = "INFO"

    # Registry + QR tokens + audit log
    db_url: str = "sqlite+aiosqlite:///./data/medverify.db"
    registry_timeout: float = 5.0  # seconds

    # Ledger: "local" keeps a hash-chained ledger in its own database,
    # "http" talks to a remote ledger service.
    ledger_backend: str = "local"
    ledger_db_url: str = "sqlite+aiosqlite:///./data/ledger.db"
    ledger_hmac_key: str = "insecure-ledger-key-change-me"
    ledger_url: str = "http://localhost:8545"
    ledger_api_token: str = ""
    ledger_timeout: float = 5.0  # seconds

    # QR tokens
    qr_ttl_seconds: int = 300

    # API
    api_title: str = "MedVerify-Engine"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    @property
    def qr_ttl_ms(self) -> int:
        return self.qr_ttl_seconds * 1000

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        if self.ledger_backend not in ("local", "http"):
            raise ValueError(
                f"MEDVERIFY_LEDGER_BACKEND must be 'local' or 'http', got: {self.ledger_backend!r}"
            )

        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"MEDVERIFY_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys: set MEDVERIFY_LEDGER_HMAC_KEY "
                "and MEDVERIFY_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> MedVerifySettings:
    settings = MedVerifySettings()
    settings.validate_for_production()
    return settings
