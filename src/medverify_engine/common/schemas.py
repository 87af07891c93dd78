"""Shared Pydantic schemas for MedVerify-Engine."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "medverify-engine"
    ledger_backend: str = "local"


class ErrorResponse(BaseModel):
    status: str = "ERROR"
    message: str
    code: str
