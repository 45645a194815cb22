"""
Error taxonomy shared by the stores and the API layer.

Stores raise these; main.py registers handlers that turn them into
consistent JSON responses.
"""

import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

logger = logging.getLogger(__name__)


class POSError(Exception):
    """Base error with the HTTP mapping attached"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "SERVER_ERROR"
    retryable = False

    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.details = details or {}


class ValidationError(POSError):
    """Missing or invalid fields"""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class ConflictError(POSError):
    """Duplicate unique key"""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


class NotFound(POSError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class StoreUnavailable(POSError):
    """Transient database failure, safe to retry"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "STORE_UNAVAILABLE"
    retryable = True


class StoreError(POSError):
    """Database rejected the operation; retrying will not help"""

    error_code = "STORE_ERROR"


def translate_store_errors(conflict_detail: str = "Duplicate key") -> Callable:
    """
    Decorator mapping pymongo failures onto the taxonomy.

    ConnectionFailure covers AutoReconnect, NetworkTimeout and
    ServerSelectionTimeoutError. Any other PyMongoError (OperationFailure,
    WriteError, ...) becomes a non-retryable StoreError.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except DuplicateKeyError as e:
                raise ConflictError(conflict_detail) from e
            except ConnectionFailure as e:
                logger.error(f"Database unavailable in {func.__qualname__}: {e}")
                raise StoreUnavailable("Database unavailable, try again") from e
            except PyMongoError as e:
                logger.error(f"Database error in {func.__qualname__}: {e}")
                raise StoreError("Server error") from e

        return wrapper

    return decorator


async def handle_pos_error(request: Request, exc: POSError) -> JSONResponse:
    """Render a POSError as a JSON body"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} at {request.url.path}: {exc.detail}")
    else:
        logger.warning(f"{type(exc).__name__} at {request.url.path}: {exc.detail}")
    content: Dict[str, Any] = {
        "detail": exc.detail,
        "error_code": exc.error_code,
        "retryable": exc.retryable,
        "path": str(request.url.path),
    }
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)
