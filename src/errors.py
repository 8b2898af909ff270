"""Error taxonomy shared by the guardrails and the tool handlers.

Every failure that reaches the calling agent, whether a policy veto or a
remote API error, is delivered in the same ``{error, code, message}`` shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
    SEND_LIMIT_REACHED = "SEND_LIMIT_REACHED"
    PROTECTED_RESOURCE = "PROTECTED_RESOURCE"
    PAST_EVENT_PROTECTED = "PAST_EVENT_PROTECTED"
    RECURRING_SERIES_BLOCKED = "RECURRING_SERIES_BLOCKED"
    ATTACHMENT_TOO_LARGE = "ATTACHMENT_TOO_LARGE"
    BLOCKED_ATTACHMENT_TYPE = "BLOCKED_ATTACHMENT_TYPE"
    AUTH_EXPIRED = "AUTH_EXPIRED"
    AUTH_MISSING = "AUTH_MISSING"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    API_ERROR = "API_ERROR"


@dataclass(frozen=True)
class StructuredError:
    """The uniform error payload returned to the agent."""

    code: ErrorCode
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "code": str(self.code), "message": self.message}


class OperationError(Exception):
    """Base for failures raised inside a tool handler.

    Caught at the handler boundary and converted into a ``StructuredError``.
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_structured(self) -> StructuredError:
        return StructuredError(code=self.code, message=self.message)


class GuardrailError(OperationError):
    """A policy check rejected the operation. Never retried."""


class AuthMissingError(OperationError):
    """No usable Google credentials are available on disk."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.AUTH_MISSING, message)


class InvalidInputError(OperationError):
    """Malformed input caught before any policy check runs."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.VALIDATION_ERROR, message)


def api_error(status: int, message: str) -> StructuredError:
    """Translate a remote HTTP status into a structured error.

    401 means the token was revoked or expired, 404 a missing resource.
    Everything else, rate limits and server errors included, is a generic
    API error; nothing here retries.
    """
    if status == 401:
        return StructuredError(ErrorCode.AUTH_EXPIRED, message)
    if status == 404:
        return StructuredError(ErrorCode.NOT_FOUND, message)
    return StructuredError(ErrorCode.API_ERROR, message)
