import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from loguru import logger

from errors import RentalAppError


def _body(status: int, message, request: Request) -> dict:
    return {
        "statusCode": status,
        "message": message,
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _respond(status: int, message, request: Request) -> JSONResponse:
    text = message if isinstance(message, str) else "; ".join(message)
    if status >= 500:
        logger.error(f"[Err] {status} {request.method} {request.url.path} - {text}")
    else:
        logger.warning(f"[Err] {status} {request.method} {request.url.path} - {text}")
    return JSONResponse(status_code=status, content=_body(status, message, request))


async def app_error_handler(request: Request, exc: RentalAppError):
    return _respond(exc.status_code, exc.message, request)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        messages.append(f"{where}: {err.get('msg')}" if where else err.get("msg"))
    return _respond(400, messages, request)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _respond(exc.status_code, str(exc.detail), request)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return _respond(500, "Internal server error", request)


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    logger.debug(f"[Req] {request.method} {request.url.path}")
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    user_id = getattr(request.state, "user_id", "anonymous")
    logger.debug(f"[Res] {response.status_code} {request.method} {request.url.path} {ms:.0f}ms user={user_id}")
    return response


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(RentalAppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.middleware("http")(log_requests)
