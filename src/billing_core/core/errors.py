"""Structured error kinds shared by services and the HTTP layer."""

from __future__ import annotations

from enum import Enum

from fastapi import status


class ErrorKind(str, Enum):
    """Machine-readable error categories returned to clients."""

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad_request"
    RATE_LIMITED = "rate_limited"
    INTERNAL = "internal"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.UNAUTHORIZED: "You need to sign in before continuing.",
    ErrorKind.NOT_FOUND: "The requested resource was not found.",
    ErrorKind.FORBIDDEN: "You do not have access to this resource.",
    ErrorKind.BAD_REQUEST: "The request couldn't be processed.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please try again later.",
    ErrorKind.INTERNAL: "Something went wrong. Please try again later.",
}


class BillingError(Exception):
    """Business-rule violation recovered into a structured error.

    Args:
        kind: Error category.
        message: Human-readable explanation; defaults per kind.
        retry_after: Whole seconds the client should wait (rate limits only).
        scope: Surface the error originated from, rendered as ``kind:scope``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        *,
        retry_after: int | None = None,
        scope: str = "api",
    ) -> None:
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES[kind]
        self.retry_after = retry_after
        self.scope = scope
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return f"{self.kind.value}:{self.scope}"

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_payload(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}

    def headers(self) -> dict[str, str] | None:
        if self.kind is ErrorKind.RATE_LIMITED and self.retry_after is not None:
            return {"Retry-After": str(self.retry_after)}
        return None
