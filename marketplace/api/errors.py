"""Map core errors to HTTP responses."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from marketplace.ledger.errors import (
    ConflictError,
    DependencyUnavailable,
    OrderNotFoundError,
    PriceMismatchError,
    ValidationError,
)
from marketplace.preview.delivery import AssetUnavailableError

logger = logging.getLogger(__name__)


def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def _price_mismatch(request: Request, exc: PriceMismatchError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "expected": exc.expected, "actual": exc.actual},
    )


def _validation(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def _conflict(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc), "reason": exc.reason})


def _unavailable(request: Request, exc: DependencyUnavailable) -> JSONResponse:
    logger.error("dependency_unavailable", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable"})


def _ledger_unavailable(request: Request, exc: OperationalError) -> JSONResponse:
    # Lost connection or timeout: the request session is rolled back by get_db
    logger.error("ledger_unavailable", extra={"path": request.url.path, "error": type(exc.orig).__name__})
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable"})


def register_exception_handlers(app: FastAPI) -> None:
    # Starlette resolves handlers by MRO, so subclasses win over ValidationError
    app.add_exception_handler(OrderNotFoundError, _not_found)
    app.add_exception_handler(AssetUnavailableError, _not_found)
    app.add_exception_handler(PriceMismatchError, _price_mismatch)
    app.add_exception_handler(ValidationError, _validation)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(DependencyUnavailable, _unavailable)
    app.add_exception_handler(OperationalError, _ledger_unavailable)
