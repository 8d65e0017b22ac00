"""Storefront FastAPI application.

Usage:
    uvicorn storefront.app:create_app --factory --host 0.0.0.0 --port 8000 --reload

Configuration comes from the environment (see ``storefront.config``).
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ValidationError

from storefront.api.routes import cart_router, checkout_router, order_router
from storefront.api.schemas import ErrorResponse
from storefront.config import Settings
from storefront.domain import shop
from storefront.exceptions import CheckoutError
from storefront.session import Storefront
from storefront.store.errors import EntityNotFound, StoreError
from storefront.utils.logging import add_context, clear_context, configure_logging

shop.init(traverse=False)

logger = structlog.get_logger(__name__)


def _error(status_code: int, error: str, message: str, details: dict | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return _error(422, "validation_error", "Validation failed", exc.messages)

    @app.exception_handler(InvalidOperationError)
    async def invalid_operation(request: Request, exc: InvalidOperationError):
        return _error(409, "invalid_operation", str(exc))

    @app.exception_handler(CheckoutError)
    async def checkout_failed(request: Request, exc: CheckoutError):
        return _error(
            502,
            "checkout_failed",
            exc.message,
            {"step": exc.step.value, "order_id": exc.order_id},
        )

    @app.exception_handler(EntityNotFound)
    async def not_found(request: Request, exc: EntityNotFound):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError):
        logger.error("Entity store call failed", path=request.url.path, error=str(exc))
        return _error(502, "store_error", str(exc))


def create_app(storefront: Storefront | None = None, settings: Settings | None = None) -> FastAPI:
    if storefront is None:
        settings = settings or Settings.from_env()
        configure_logging(settings.log_dir)
        storefront = Storefront.from_settings(settings)

    app = FastAPI(
        title="Storefront API",
        description="Shopping cart lifecycle and checkout orchestration",
    )
    app.state.storefront = storefront

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Push the storefront domain context and tag log lines with the request method and path."""
        clear_context()
        add_context(method=request.method, path=request.url.path)
        try:
            with shop.domain_context():
                return await call_next(request)
        finally:
            clear_context()

    _register_exception_handlers(app)

    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(order_router)

    @app.get("/health")
    async def health():
        cart = storefront.cart.cart
        return JSONResponse(
            content={
                "status": "ok",
                "cart": {"cart_id": cart.cart_id if cart else None, "sync_pending": storefront.sync.pending},
            }
        )

    return app

