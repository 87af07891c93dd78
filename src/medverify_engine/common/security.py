"""API key authentication dependencies."""

import hmac

from fastapi import Header

from medverify_engine.common.exceptions import AuthenticationError


async def require_api_key(
    x_medverify_api_key: str = Header(..., alias="X-MedVerify-Api-Key"),
) -> str:
    """FastAPI dependency that validates the manufacturer/admin API key."""
    from medverify_engine.common.config import get_settings

    settings = get_settings()
    if not hmac.compare_digest(x_medverify_api_key.encode(), settings.api_key.encode()):
        raise AuthenticationError()
    return x_medverify_api_key
