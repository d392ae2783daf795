"""Global exception handlers for consistent error responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from libs.common.errors import MarketplaceError
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


async def marketplace_error_handler(
    request: Request, exc: MarketplaceError
) -> JSONResponse:
    """Render a domain error as ``{"detail", "code"}`` with its mapped status."""
    if exc.integrity:
        logger.error(
            "Invariant violation on %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
        )
    else:
        logger.info(
            "%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message
        )

    headers = {}
    request_id = get_request_id()
    if request_id:
        headers["X-Request-ID"] = request_id
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=headers
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register the domain error handlers on an app."""
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
