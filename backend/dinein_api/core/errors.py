"""
Exception handlers for errors that escape the domain services.

AppException subclasses are HTTPExceptions and need no handler. Database
errors raised outside safe_commit (a lock wait that timed out, a dropped
connection) are reported as a transient 503 like StoreError.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from shared.config.logging import rest_api_logger as logger


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Database error",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database temporarily unavailable. Please try again."},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
