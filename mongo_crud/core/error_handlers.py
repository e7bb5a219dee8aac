"""Global error handlers for FastAPI applications that serve record stores."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from mongo_crud.core.exceptions import AppError


def _error_response(status_code: int, detail: str, error_code: str, context: dict | None = None):
    content: dict = {"detail": detail, "error_code": error_code}
    if context:
        content.update(context)
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI) -> None:
    """Register exception handlers on the FastAPI app.

    AppError subclasses render with their own status code, `detail`,
    `error_code` and context fields. Stores let driver errors through
    untouched, so the two driver failures a route handler can meaningfully
    report are mapped here as well: a duplicate key (409) and a lost
    server connection (503). Anything else stays a 500.
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return _error_response(exc.status_code, exc.detail, exc.error_code, exc.context)

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
        return _error_response(409, "Record already exists", "DUPLICATE_KEY")

    @app.exception_handler(ConnectionFailure)
    async def connection_failure_handler(request: Request, exc: ConnectionFailure) -> JSONResponse:
        return _error_response(503, "Document store unavailable", "STORE_UNAVAILABLE")
