import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursehub.services.media import MediaStoreError

logger = logging.getLogger(__name__)


def envelope(message: str | None = None, data=None, **extra) -> dict:
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


def describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path", "cookie", "header")]
    reason = first.get("msg", "Invalid value")
    return f"{'.'.join(location)}: {reason}" if location else reason


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError):
        return error_response(400, describe_validation_error(exc))

    @app.exception_handler(MediaStoreError)
    async def media_exception_handler(_request: Request, exc: MediaStoreError):
        logger.error("Media store failure: %s", exc)
        return error_response(500, "Error processing media upload")

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(_request: Request, exc: SQLAlchemyError):
        logger.exception("Database operation failed")
        return error_response(500, "Internal server error")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception):
        logger.exception("Unhandled error")
        return error_response(500, "Internal server error")
