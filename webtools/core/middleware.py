import logging
import time
from typing import Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..services.json_body import error_json
from ..services.random_strings import random_token


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_SECONDS = 1.0


def _request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get(REQUEST_ID_HEADER) or random_token(16)
        request.state.request_id = request_id
    return request_id


async def log_requests(request: Request, call_next: Callable):
    start_time = time.time()
    request_id = _request_id(request)

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"[{request_id}] {request.method} {request.url.path} - ERROR: {str(e)} - {process_time:.2f}s")
        raise

    process_time = time.time() - start_time
    # Only log slow requests or errors
    if response.status_code >= 400:
        logger.warning(f"[{request_id}] {request.method} {request.url.path} - {response.status_code} - {process_time:.2f}s")
    elif process_time > SLOW_REQUEST_SECONDS:
        logger.info(f"[{request_id}] {request.method} {request.url.path} - {response.status_code} - {process_time:.2f}s")
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"[{_request_id(request)}] {request.method} {request.url.path}: {exc.detail}")
    response = error_json(HTTPException(status_code=exc.status_code, detail=exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    response.headers[REQUEST_ID_HEADER] = _request_id(request)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    error = errors[0] if errors else {}
    field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = error.get("msg", "Invalid request")
    if field:
        message = f'invalid value for field "{field}": {message}'
    logger.warning(f"[{_request_id(request)}] {request.method} {request.url.path} - validation failed: {message}")

    response = error_json(message, status_code=422)
    response.headers[REQUEST_ID_HEADER] = _request_id(request)
    return response


async def global_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)
    logger.error(f"[{request_id}] Unhandled exception in {request.method} {request.url.path}: {str(exc)}", exc_info=True)

    response = error_json("Internal server error", status_code=500)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def register(app: FastAPI) -> FastAPI:
    """Install request logging and the JSON error envelope on `app`."""
    @app.middleware("http")
    async def _log_requests(request, call_next):
        return await log_requests(request, call_next)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    return app
