"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payout_engine import __version__
from payout_engine.api.routes import (
    health_router,
    notifications_router,
    payment_methods_router,
    rules_router,
    transactions_router,
)
from payout_engine.config import get_settings
from payout_engine.database import create_tables, dispose_db, init_db
from payout_engine.errors import (
    ConcurrentUpdateError,
    InvalidStateError,
    NotFoundError,
    PayoutError,
    RemoteStoreError,
    UnsupportedMethodError,
    ValidationError,
)
from payout_engine.payments import build_default_dispatcher

logger = logging.getLogger(__name__)

# Most specific class wins; lookup follows the exception's MRO
ERROR_STATUS: dict[type[PayoutError], tuple[int, str]] = {
    ValidationError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR"),
    InvalidStateError: (status.HTTP_409_CONFLICT, "INVALID_STATE"),
    UnsupportedMethodError: (status.HTTP_400_BAD_REQUEST, "UNSUPPORTED_METHOD"),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    ConcurrentUpdateError: (status.HTTP_409_CONFLICT, "CONCURRENT_UPDATE"),
    RemoteStoreError: (status.HTTP_503_SERVICE_UNAVAILABLE, "STORE_UNAVAILABLE"),
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    engine, _ = init_db()
    await create_tables(engine)
    if getattr(app.state, "dispatcher", None) is None:
        app.state.dispatcher = build_default_dispatcher(settings)
    logger.info(
        "Payout engine %s started with methods: %s",
        settings.engine_version,
        ", ".join(m.value for m in app.state.dispatcher.methods),
    )
    yield
    # Shutdown
    await dispose_db()


def _error_content(exc: PayoutError, code: str) -> dict:
    content: dict = {"detail": str(exc), "code": code}
    if isinstance(exc, ValidationError):
        content["context"] = {"errors": exc.errors}
    elif isinstance(exc, InvalidStateError):
        content["context"] = {
            "from_status": exc.from_status,
            "to_status": exc.to_status,
            "transaction_id": str(exc.transaction_id) if exc.transaction_id else None,
        }
    elif isinstance(exc, UnsupportedMethodError):
        content["context"] = {"method": exc.method}
    return content


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payout Engine API",
        description="Payroll rules, payout approval and payment dispatch",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    def register(error_cls: type[PayoutError], status_code: int, code: str) -> None:
        @app.exception_handler(error_cls)
        async def handle(request: Request, exc: PayoutError) -> JSONResponse:
            if status_code >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=status_code, content=_error_content(exc, code))

    for error_cls, (status_code, code) in ERROR_STATUS.items():
        register(error_cls, status_code, code)

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(rules_router, prefix="/api/v1")
    app.include_router(transactions_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")
    app.include_router(payment_methods_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
