from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel, Field


class RelayError(Exception):
    """Base class for every error raised by the relay core."""


class TransportError(RelayError):
    """Network failure or timeout while talking to a backend."""


class SessionStoreUnavailable(TransportError):
    """
    The session backend could not be reached.

    This must abort the current message instead of being read as "no session",
    otherwise a fresh thread would be created for a user that already has one.
    """


class BackendStatusError(RelayError):
    """The backend answered with an HTTP error status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        code: Optional[str] = None,
        text: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.text = text

    @property
    def rate_limited(self) -> bool:
        return self.status_code == status.HTTP_429_TOO_MANY_REQUESTS


class ProtocolInconsistency(RelayError):
    """Data the protocol guarantees is missing or malformed."""


class ConfigurationMissing(RelayError):
    """Raised when required credentials or identifiers are not configured."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        message = "Missing required configuration: " + ", ".join(self.missing)
        super().__init__(message)


class ErrorResponse(BaseModel):
    """
    Standard error payload returned by the HTTP surface:
    {
        "error": "forbidden",
        "message": "Webhook verification failed",
        "code": 403,
        "details": {...}
    }
    """

    error: str = Field(..., description="Machine-readable error type")
    message: str = Field(..., description="Human-readable error message")
    code: int = Field(..., description="HTTP status code for this error")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional structured error details"
    )


def http_error(
    status_code: int,
    *,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    """
    Helper to create an HTTPException with a standardised error body.
    """
    payload = ErrorResponse(
        error=error,
        message=message,
        code=status_code,
        details=details,
    )
    return HTTPException(status_code=status_code, detail=payload.model_dump())


def bad_request(message: str, *, details: Optional[Dict[str, Any]] = None) -> HTTPException:
    return http_error(
        status.HTTP_400_BAD_REQUEST, error="bad_request", message=message, details=details
    )


def forbidden(message: str, *, details: Optional[Dict[str, Any]] = None) -> HTTPException:
    return http_error(
        status.HTTP_403_FORBIDDEN, error="forbidden", message=message, details=details
    )


def internal_error(
    message: str, *, details: Optional[Dict[str, Any]] = None
) -> HTTPException:
    return http_error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="internal_error",
        message=message,
        details=details,
    )


__all__ = [
    "RelayError",
    "TransportError",
    "SessionStoreUnavailable",
    "BackendStatusError",
    "ProtocolInconsistency",
    "ConfigurationMissing",
    "ErrorResponse",
    "http_error",
    "bad_request",
    "forbidden",
    "internal_error",
]
