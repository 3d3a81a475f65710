"""HTTP mapping for storefront errors that are not Protean validation errors.

Protean's own handlers (``register_exception_handlers``) already turn
``ValidationError`` into 400 and ``ObjectNotFoundError`` into 404; every
business error in ``storefront.errors`` is a ``ValidationError``. What is
left is ownership (403), gateway failures (502/501) and commands that keep
losing optimistic-concurrency races (409).
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from storefront.errors import GatewayError, GatewayNotImplemented, PermissionDenied

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 3


class ConcurrencyConflict(Exception):
    """A command lost every attempt to a concurrent writer."""


def process_with_retry(command, attempts: int = MAX_ATTEMPTS):
    """Process ``command`` synchronously, retrying when a concurrent write wins.

    Each attempt runs a fresh Unit of Work, so stock and coupon counters are
    re-read from the store.
    """
    for attempt in range(1, attempts + 1):
        try:
            return current_domain.process(command, asynchronous=False)
        except ExpectedVersionError as exc:
            logger.warning(
                "command.version_conflict",
                command=type(command).__name__,
                attempt=attempt,
                error=str(exc),
            )
    raise ConcurrencyConflict(f"{type(command).__name__} conflicted with a concurrent update, please retry")


def register_storefront_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PermissionDenied)
    async def permission_denied(request: Request, exc: PermissionDenied):
        return JSONResponse(status_code=403, content={"error": exc.message})

    @app.exception_handler(GatewayNotImplemented)
    async def gateway_not_implemented(request: Request, exc: GatewayNotImplemented):
        return JSONResponse(status_code=501, content={"error": exc.message})

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError):
        logger.error("gateway.request_failed", path=request.url.path, error=exc.message, retryable=exc.retryable)
        return JSONResponse(status_code=502, content={"error": exc.message, "retryable": exc.retryable})

    @app.exception_handler(ConcurrencyConflict)
    async def concurrency_conflict(request: Request, exc: ConcurrencyConflict):
        return JSONResponse(status_code=409, content={"error": str(exc)})
