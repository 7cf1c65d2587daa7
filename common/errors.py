"""
Error hierarchy for the SafeWords core plus FastAPI handlers.

Every failure the core can surface derives from SafeWordsError so the
device bridge can translate it into a consistent JSON body:

    {"error": {"code": "...", "message": "...", "status": 409, "details": {...}}}

None of these are fatal: the components catch what they can recover from
and only raise what the caller has to show to the user.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SafeWordsError(Exception):
    """Base exception for all core errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


# ========= Location =========


class PermissionRequiredError(SafeWordsError):
    """An operation needs location permission that has not been granted."""

    def __init__(self, message: str = "Please activate location first"):
        super().__init__(message, status_code=403, error_code="PERMISSION_REQUIRED")


class PermissionDeniedError(PermissionRequiredError):
    """The user refused location access."""

    def __init__(self, message: str = "Location permission denied"):
        super().__init__(message)
        self.error_code = "PERMISSION_DENIED"


class LocationUnavailableError(SafeWordsError):
    """Permission or positioning fault; callers degrade to 'no location'."""

    def __init__(self, message: str = "Location not available", **details: Any):
        super().__init__(
            message,
            status_code=503,
            error_code="LOCATION_UNAVAILABLE",
            details=details,
        )


class TrackingAlreadyActiveError(SafeWordsError):
    def __init__(self, message: str = "A location watch is already active"):
        super().__init__(message, status_code=409, error_code="TRACKING_ALREADY_ACTIVE")


# ========= Dispatch =========


class SendFailedError(SafeWordsError):
    """SMS delivery failed. Never escapes the dispatch pipeline."""

    def __init__(
        self,
        message: str = "Failed to send SMS",
        *,
        partial: bool = False,
        failed_numbers: Optional[List[str]] = None,
    ):
        super().__init__(
            message,
            status_code=502,
            error_code="SEND_FAILED_PARTIAL" if partial else "SEND_FAILED_TOTAL",
            details={"failed_numbers": list(failed_numbers or [])},
        )
        self.partial = partial


# ========= Storage =========


class StorageFailureError(SafeWordsError):
    def __init__(self, operation: str, key: str, message: str = ""):
        super().__init__(
            f"Storage {operation} failed for '{key}': {message}",
            status_code=500,
            error_code="STORAGE_FAILURE",
            details={"operation": operation, "key": key},
        )


# ========= Contacts / Verification =========


class DuplicateContactError(SafeWordsError):
    def __init__(self, number: str):
        super().__init__(
            "This number is already in your trusted contacts",
            status_code=409,
            error_code="DUPLICATE_CONTACT",
            details={"number": number},
        )


class PredefinedNumberError(SafeWordsError):
    """Predefined emergency numbers are switched on, not verified."""

    def __init__(self, number: str):
        super().__init__(
            "This is a predefined emergency number, enable it from the emergency numbers list",
            status_code=409,
            error_code="PREDEFINED_NUMBER",
            details={"number": number},
        )


class ContactNotFoundError(SafeWordsError):
    def __init__(self, index: int):
        super().__init__(
            "Contact not found",
            status_code=404,
            error_code="CONTACT_NOT_FOUND",
            details={"index": index},
        )


class VerificationMismatchError(SafeWordsError):
    def __init__(self, attempts_left: int):
        super().__init__(
            "Invalid verification code",
            status_code=400,
            error_code="VERIFICATION_MISMATCH",
            details={"attempts_left": attempts_left},
        )


class VerificationStateError(SafeWordsError):
    """No live verification session, or delivery of the code failed."""

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(
            message,
            status_code=409,
            error_code="VERIFICATION_STATE",
            details={"retryable": retryable},
        )


# ========= Access Gate =========


class InvalidAccessCodeChangeError(SafeWordsError):
    def __init__(self, message: str):
        super().__init__(message, status_code=400, error_code="INVALID_ACCESS_CODE_CHANGE")


# ========= FastAPI handlers =========


def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }
    if details:
        body["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register the SafeWordsError handler on the FastAPI app."""

    @app.exception_handler(SafeWordsError)
    async def handle_safewords_error(request: Request, exc: SafeWordsError):
        logger.warning(
            "Request %s %s failed [%s]: %s",
            request.method,
            request.url.path,
            exc.error_code,
            exc.message,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message, exc.details
        )
