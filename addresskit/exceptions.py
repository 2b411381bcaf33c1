# addresskit/exceptions.py
"""
Domain exceptions and the FastAPI handlers that turn them into
``{"error": ..., **context}`` JSON responses.
"""
import json
import logging
import traceback
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# --- Domain exceptions ---
class AddressKitError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.context}


class ValidationError(AddressKitError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation Error"


class NotFoundError(AddressKitError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not Found"


class ConflictError(AddressKitError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Duplicate entry"


class StoreError(AddressKitError):
    """Repository or Fallback Store I/O failure."""

    default_message = "Store Error"


class UnknownError(AddressKitError):
    default_message = "Unknown Error"


# --- Classification of anything that escaped the service layer ---
def describe_error(value: Any) -> Tuple[int, str]:
    """
    Maps an arbitrary raised (or passed) value to a status code and a
    generic label. Never includes the value's own message.
    """
    if isinstance(value, AddressKitError):
        return value.status_code, value.message
    if value is None:
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Unknown Error"
    if isinstance(value, str):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "String Error"
    if isinstance(value, (list, tuple)):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Array Error"
    if isinstance(value, dict):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Object Error"
    if isinstance(value, DuplicateKeyError):
        return status.HTTP_409_CONFLICT, "Duplicate entry"
    if isinstance(value, PyMongoError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Database Error"
    if isinstance(value, json.JSONDecodeError):
        return status.HTTP_400_BAD_REQUEST, "Invalid JSON format"
    if isinstance(value, FileNotFoundError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "File System Error"
    if isinstance(value, ConnectionRefusedError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Connection Error"
    if isinstance(value, TimeoutError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Request Timeout"
    if isinstance(value, TypeError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Type Error"
    if isinstance(value, NameError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Reference Error"
    if isinstance(value, (OverflowError, IndexError)):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Range Error"
    if isinstance(value, BaseException):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Unknown Error"


def error_body(value: Any, debug: bool = False) -> Tuple[int, Dict[str, Any]]:
    status_code, label = describe_error(value)
    body: Dict[str, Any] = {"error": label}
    if isinstance(value, AddressKitError):
        body.update(value.context)
    if debug:
        if isinstance(value, BaseException):
            body["stack"] = "".join(
                traceback.format_exception(type(value), value, value.__traceback__)
            )
            body["details"] = str(value)
        else:
            body["details"] = repr(value)
    return status_code, body


# --- FastAPI wiring ---
def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Installs the JSON error envelope on the application."""

    @app.exception_handler(AddressKitError)
    async def handle_domain_error(request: Request, exc: AddressKitError):
        if exc.status_code >= 500:
            logger.exception(
                "Store failure on %s %s", request.method, request.url.path
            )
        status_code, body = error_body(exc, debug)
        return JSONResponse(status_code=status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Validation Error",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            content = {"error": "Route not found", "path": request.url.path}
        else:
            content = {"error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        status_code, body = error_body(exc, debug)
        return JSONResponse(status_code=status_code, content=body)
