"""
Domain error -> HTTP response mapping
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from flowmoney.domain.errors import DomainError

logger = logging.getLogger(__name__)


def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """{"detail": message, "reason": machine-readable reason}"""
    if exc.status_code == 403:
        logger.info("Denied %s %s: %s", request.method, request.url.path, exc.reason)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "reason": exc.reason},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
