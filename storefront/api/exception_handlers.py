"""
Exception handlers for FastAPI application.

Business errors are rendered as ``{"error": code, "message": ..., "details": ...}``.
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.core.domain import (
    BusinessRuleViolationException,
    CampaignNotEligibleException,
    CouponBelowMinimumException,
    CouponInvalidException,
    DomainException,
    EntityNotFoundException,
    IllegalTransitionException,
    InsufficientStockException,
    IntegrationException,
    InvalidOperationException,
    PaymentVerificationFailedException,
    ReturnWindowExpiredException,
    StockLedgerInvariantError,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
DOMAIN_STATUS_CODES: list[tuple[type[DomainException], int]] = [
    (InsufficientStockException, status.HTTP_409_CONFLICT),
    (CouponInvalidException, status.HTTP_400_BAD_REQUEST),
    (CouponBelowMinimumException, status.HTTP_400_BAD_REQUEST),
    (CampaignNotEligibleException, status.HTTP_400_BAD_REQUEST),
    (IllegalTransitionException, status.HTTP_409_CONFLICT),
    (ReturnWindowExpiredException, status.HTTP_409_CONFLICT),
    (PaymentVerificationFailedException, status.HTTP_402_PAYMENT_REQUIRED),
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (BusinessRuleViolationException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidOperationException, status.HTTP_409_CONFLICT),
    (IntegrationException, status.HTTP_502_BAD_GATEWAY),
]


def status_code_for(exc: DomainException) -> int:
    for exc_type, status_code in DOMAIN_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a DomainException with the status its kind maps to."""
    if not isinstance(exc, DomainException):
        return await global_exception_handler(request, exc)

    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def stock_invariant_handler(request: Request, exc: Exception) -> JSONResponse:
    """A broken stock ledger is a defect: log critical, answer 500."""
    logger.critical(f"Stock ledger invariant broken on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "STOCK_LEDGER_INVARIANT",
            "message": "Internal server error",
            "details": {},
        },
    )


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle HTTPException with consistent response format."""
    http_exc = exc if isinstance(exc, HTTPException) else HTTPException(status_code=500, detail=str(exc))
    return JSONResponse(
        status_code=http_exc.status_code,
        content={
            "error": "HTTP_ERROR",
            "message": http_exc.detail,
            "details": {"status_code": http_exc.status_code},
        },
        headers=http_exc.headers,
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle request validation errors with detailed error messages."""
    if not isinstance(exc, RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": "VALIDATION_ERROR", "message": str(exc), "details": {}},
        )

    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
        )

    logger.warning(f"Validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Validation error",
            "details": {"errors": errors},
        },
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all unhandled exceptions.

    Logs the full exception with traceback and returns a safe error response.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc!s}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "INTERNAL_ERROR",
            "message": "Internal server error",
            "details": {},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(StockLedgerInvariantError, stock_invariant_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    logger.info("Exception handlers registered")
