"""Global error handlers.

Every error body is ``{"detail": ..., "code": ...}``. Engine errors keep
their own code; the remaining handlers fill in a generic one.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from academy.rewards.errors import ConflictError, InvalidArgumentError, NotFoundError, RewardError

logger = structlog.get_logger()

_STATUS_BY_ERROR: dict[type[RewardError], int] = {
    NotFoundError: 404,
    InvalidArgumentError: 400,
    ConflictError: 409,
}


def status_for(exc: RewardError) -> int:
    for error_type, status in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    return 400


def _error(status: int, detail: object, code: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status, content={"detail": detail, "code": code, **extra})


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(RewardError)
    async def reward_error_handler(request: Request, exc: RewardError) -> JSONResponse:
        # Rejections are expected outcomes, so INFO rather than ERROR.
        logger.info("reward_rejected", path=request.url.path, code=exc.code, detail=exc.message)
        return _error(status_for(exc), exc.message, exc.code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, exc.detail, "http_error")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"][1:]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return _error(422, "Validation error", "validation_error", errors=errors)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return _error(500, "Internal server error", "internal_error")
