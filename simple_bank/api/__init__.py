"""
Simple Bank API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import BankConfig, load_config
from ..errors import (
    BankError, CurrencyMismatchError, ForbiddenError, InsufficientFundsError, InvalidRequestError,
    NotFoundError, TransactionConflictError, TransferCancelledError, UnauthorizedError
)
from ..logging_config import log_action, setup_logging
from ..storage import LedgerStore
from .auth import BankingSystem, logger
from .accounts import router as accounts_router
from .transfers import router as transfers_router


STATUS_BY_ERROR = [
    (InvalidRequestError, 400),
    (CurrencyMismatchError, 400),
    (UnauthorizedError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (TransferCancelledError, 408),
    (TransactionConflictError, 409),
    (InsufficientFundsError, 422),
]


def status_for_error(error: BankError) -> int:
    """HTTP status code for a banking error; unknown errors are server errors"""
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(config: Optional[BankConfig] = None,
               store: Optional[LedgerStore] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    config = config or load_config()
    setup_logging(config.log_level, log_format=config.log_format)

    banking_system = BankingSystem(config, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Close the ledger store on shutdown"""
        yield
        banking_system.close()

    app = FastAPI(
        title="Simple Bank API",
        description="Accounts and atomic money transfers",
        version=__version__,
        lifespan=lifespan
    )
    app.state.banking_system = banking_system

    @app.exception_handler(BankError)
    async def handle_bank_error(request: Request, exc: BankError):
        status_code = status_for_error(exc)
        if status_code >= 500:
            log_action(
                logger, "error", f"Request failed: {exc.message}",
                action="request_failed", resource=request.url.path,
                extra={"error": exc.code}
            )
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.code, "detail": exc.message}
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": InvalidRequestError.code, "detail": str(exc.errors())}
        )

    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(transfers_router, prefix="/transfers", tags=["Transfers"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "simple_bank_api",
            "version": __version__
        }

    return app
