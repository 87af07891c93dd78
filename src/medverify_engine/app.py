"""FastAPI application factory for MedVerify-Engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medverify_engine.common.config import get_settings
from medverify_engine.common.exceptions import MedVerifyError
from medverify_engine.common.logging import setup_logging
from medverify_engine.common.schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from medverify_engine.deps import get_db, get_ledger_db, get_ledger_gateway, get_qr_token_service
        from medverify_engine.ledger.models import LedgerEntryModel
        db = get_db()
        await db.init()
        await db.create_all()
        if settings.ledger_backend == "local":
            ledger_db = get_ledger_db()
            await ledger_db.init()
            await ledger_db.create_all(tables=[LedgerEntryModel.__table__])
        logger.info("MedVerify-Engine started (ledger backend: %s)", settings.ledger_backend)
        yield
        # Shutdown
        await get_qr_token_service().wait_for_attestations()
        await get_ledger_gateway().close()
        if settings.ledger_backend == "local":
            await get_ledger_db().close()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MedVerifyError)
    async def medverify_error_handler(request: Request, exc: MedVerifyError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        body = ErrorResponse(message=exc.message, code=exc.code)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        body = ErrorResponse(message=message, code="VALIDATION_ERROR")
        return JSONResponse(status_code=422, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            version=settings.api_version, ledger_backend=settings.ledger_backend,
        )

    # Mount routers
    from medverify_engine.verification.router import router as verification_router
    from medverify_engine.registry.router import router as medicine_router
    from medverify_engine.audit.router import router as audit_router
    from medverify_engine.ledger.router import router as ledger_router

    prefix = settings.api_prefix
    app.include_router(verification_router, prefix=prefix, tags=["verification"])
    app.include_router(medicine_router, prefix=prefix, tags=["medicines"])
    app.include_router(audit_router, prefix=prefix, tags=["audit"])
    app.include_router(ledger_router, prefix=prefix, tags=["ledger"])

    return app
