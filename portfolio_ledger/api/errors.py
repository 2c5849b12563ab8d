"""
Order error -> HTTP response mapping
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from portfolio_ledger.domain.errors import (
    AccountUnavailable,
    ConcurrentModification,
    OrderError,
    ProductUnavailable,
    StorageFailure,
)

logger = logging.getLogger(__name__)


def status_for(exc: OrderError) -> int:
    if isinstance(exc, (AccountUnavailable, ProductUnavailable)):
        return 404
    if isinstance(exc, ConcurrentModification):
        return 409
    if isinstance(exc, StorageFailure):
        return 503
    return 400


async def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Order failed on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderError, order_error_handler)
