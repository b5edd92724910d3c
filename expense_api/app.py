"""
Application factory for the expense ledger HTTP API.

Error mapping:
    ValidationError, ConflictError -> 400 {"error", "code"}
    NotFoundError                  -> 404 {"error", "code"}
    InternalLedgerError, other     -> 500 {"error"}
    request body/query schema      -> 400 {"error", "code": "VALIDATION_ERROR"}
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from expense_api.middleware import request_context
from expense_api.routes import router
from expense_ledger import __version__
from expense_ledger.config import LedgerSettings, load_settings
from expense_ledger.domain.clock import Clock
from expense_ledger.exceptions import (
    ConflictError,
    ExpenseLedgerError,
    NotFoundError,
    ValidationError,
)
from expense_ledger.logging_config import configure_logging, get_logger
from expense_ledger.selectors.reference_directory import ReferenceDirectory
from expense_ledger.services.ledger_orchestrator import ExpenseLedger

logger = get_logger("api")


def _status_for(exc: ExpenseLedgerError) -> int:
    if isinstance(exc, (ValidationError, ConflictError)):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    return 500


async def ledger_error_handler(request: Request, exc: ExpenseLedgerError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code == 500:
        logger.error("request_failed", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal ledger error"})
    logger.info(
        "request_rejected",
        extra={"error_code": exc.code, "status_code": status_code},
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc), "code": exc.code},
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{location}: {message}" if location else message,
            "code": ValidationError.code,
        },
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("request_failed", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: LedgerSettings | None = None,
    ledger: ExpenseLedger | None = None,
    directory: ReferenceDirectory | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    When ``ledger`` is not given, the database named by ``settings`` is
    initialized and its tables are created.
    """
    settings = settings or (ledger.settings if ledger else load_settings())
    configure_logging(level=settings.log_level)

    if ledger is None:
        ledger = ExpenseLedger.from_settings(settings, clock=clock, directory=directory)

    app = FastAPI(title="Expense Ledger API", version=__version__)
    app.state.ledger = ledger

    app.middleware("http")(request_context)
    app.add_exception_handler(ExpenseLedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    logger.info("api_started", extra={"version": __version__})
    return app
