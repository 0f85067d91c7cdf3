"""Map commerce exceptions onto HTTP responses.

Protean's own handlers cover ``ValidationError`` (400) and
``ObjectNotFoundError`` (404); the handlers here add the commerce-specific
failures on top.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from commerce.errors import ConcurrencyConflict, GatewayError, InsufficientStock

logger = structlog.get_logger(__name__)


async def _concurrency_conflict(request: Request, exc: ConcurrencyConflict) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": "concurrency_conflict",
            "message": str(exc),
            "order_id": exc.order_id,
            "expected_version": exc.expected_version,
        },
    )


async def _insufficient_stock(request: Request, exc: InsufficientStock) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": "insufficient_stock",
            "message": str(exc),
            "insufficient_items": exc.shortfalls,
        },
    )


async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    logger.error("Payment gateway error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=502,
        content={"error": "gateway_error", "message": "The payment provider could not process the request"},
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ConcurrencyConflict, _concurrency_conflict)
    app.add_exception_handler(InsufficientStock, _insufficient_stock)
    app.add_exception_handler(GatewayError, _gateway_error)
