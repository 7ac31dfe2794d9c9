import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.api.responses import failure
from storefront.core.config import Settings
from storefront.core.errors import AppError

logger = logging.getLogger(__name__)

_VALUE_ERROR_PREFIX = "Value error, "


def _validation_errors(exc: RequestValidationError) -> list:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = err.get("msg", "Invalid value")
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        errors.append({"path": ".".join(loc), "message": message})
    return errors


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Every error leaves the API in the same {success, message, errors} envelope."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=failure(exc.message, exc.errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route {request.url.path} not found"
        else:
            message = str(exc.detail)
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, message)
        return JSONResponse(status_code=exc.status_code, content=failure(message), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = _validation_errors(exc)
        logger.info("%s %s -> 400 validation error: %s", request.method, request.url.path, errors)
        return JSONResponse(status_code=400, content=failure("Validation error", errors))

    @app.exception_handler(ExpiredSignatureError)
    async def expired_token_handler(request: Request, exc: ExpiredSignatureError):
        logger.info("%s %s -> 401 expired token", request.method, request.url.path)
        return JSONResponse(status_code=401, content=failure("Your token has expired. Please log in again."))

    @app.exception_handler(JWTError)
    async def jwt_error_handler(request: Request, exc: JWTError):
        logger.info("%s %s -> 401 invalid token: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=401, content=failure("Invalid token. Please log in again."))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("%s %s -> 409 integrity error: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(status_code=409, content=failure("Resource already exists"))

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("%s %s -> 500 database error", request.method, request.url.path)
        return JSONResponse(status_code=500, content=failure("Database error"))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        detail = None if settings.is_production else [{"path": "", "message": repr(exc)}]
        return JSONResponse(status_code=500, content=failure("Internal server error", detail))
