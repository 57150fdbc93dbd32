"""
Centralized API error handling helpers.

Maps core errors onto HTTP status codes with a consistent
`{code, message, operation}` detail payload.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status

from perfwatch.config import settings
from perfwatch.core.errors import (
    AdapterError,
    AlreadyExists,
    InvalidStatisticConfig,
    NotFound,
    PerfWatchError,
    StorageFailure,
    ThresholdInUse,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiError:
    status_code: int
    code: str
    message: str
    hint: str | None = None
    debug: str | None = None


def _maybe_debug(exc: BaseException) -> str | None:
    if settings.APP_DEBUG:
        return repr(exc.__cause__ or exc)
    return None


def classify_error(exc: BaseException) -> ApiError | None:
    """Classify a core error into a user-actionable API error."""
    if isinstance(exc, AdapterError):
        hint = None
        remainder = getattr(exc, "remainder", "")
        if remainder:
            hint = f"Unparsed input starts with: {remainder[:200]!r}"
        return ApiError(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=exc.code,
            message=str(exc),
            hint=hint,
        )

    if isinstance(exc, InvalidStatisticConfig):
        return ApiError(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=exc.code,
            message=str(exc),
        )

    if isinstance(exc, NotFound):
        return ApiError(status_code=status.HTTP_404_NOT_FOUND, code=exc.code, message=str(exc))

    if isinstance(exc, AlreadyExists):
        return ApiError(status_code=status.HTTP_409_CONFLICT, code=exc.code, message=str(exc))

    if isinstance(exc, ThresholdInUse):
        return ApiError(
            status_code=status.HTTP_409_CONFLICT,
            code=exc.code,
            message=str(exc),
            hint="Retry with ?cascade=true to delete its boundaries and alerts too.",
        )

    if isinstance(exc, StorageFailure):
        return ApiError(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code=exc.code,
            message="Storage is unavailable or rejected the write; nothing was saved.",
            hint="Check the database connection, then retry.",
            debug=_maybe_debug(exc),
        )

    if isinstance(exc, PerfWatchError):
        return ApiError(
            status_code=status.HTTP_400_BAD_REQUEST,
            code=exc.code,
            message=str(exc),
        )

    return None


def http_exception(operation: str, exc: BaseException) -> HTTPException:
    """
    Convert an exception into a consistent HTTPException payload.
    """
    known = classify_error(exc)
    if known is not None and known.status_code < 500:
        logger.info(f"API request '{operation}' rejected: {exc}")
    else:
        # Log the full traceback to the server console for debugging
        logger.error(
            "API error during '%s': %s\n%s",
            operation,
            exc,
            traceback.format_exc(),
        )

    if known is not None:
        detail: dict[str, Any] = {
            "code": known.code,
            "message": known.message,
            "operation": operation,
        }
        if known.hint:
            detail["hint"] = known.hint
        if known.debug:
            detail["debug"] = known.debug
        return HTTPException(status_code=known.status_code, detail=detail)

    # Default: preserve a safe summary + optional debug.
    base_detail: dict[str, Any] = {
        "code": "INTERNAL_ERROR",
        "message": f"{operation} failed.",
        "operation": operation,
    }
    dbg = _maybe_debug(exc)
    if dbg:
        base_detail["debug"] = dbg
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=base_detail,
    )
