"""Error hierarchy and code mapping for the model server client."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    SERVER_ERROR = "SERVER_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    TIMEOUT = "TIMEOUT"
    DECODE_ERROR = "DECODE_ERROR"
    ALREADY_SUBSCRIBED = "ALREADY_SUBSCRIBED"
    NOT_SUBSCRIBED = "NOT_SUBSCRIBED"
    INVALID_ARGS = "INVALID_ARGS"
    INTERNAL_ERROR = "INTERNAL_ERROR"


EXIT_CODE_BY_ERROR: dict[ErrorCode, int] = {
    ErrorCode.INVALID_ARGS: 2,
    ErrorCode.TRANSPORT_ERROR: 3,
    ErrorCode.HTTP_ERROR: 4,
    ErrorCode.SERVER_ERROR: 5,
    ErrorCode.DECODE_ERROR: 6,
    ErrorCode.ALREADY_SUBSCRIBED: 7,
    ErrorCode.NOT_SUBSCRIBED: 8,
    ErrorCode.TIMEOUT: 10,
}


class ModelServerError(Exception):
    """Base typed exception raised by every request/response operation."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.suggestion = suggestion

    @property
    def exit_code(self) -> int:
        return EXIT_CODE_BY_ERROR.get(self.code, 1)

    def to_error_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload


class DecodeError(ModelServerError):
    """Raised when an untyped payload does not match the expected shape."""

    def __init__(self, expected: str, payload: Any) -> None:
        rendered = render_payload(payload)
        super().__init__(
            ErrorCode.DECODE_ERROR,
            f"cannot map payload to {expected}",
            details={"expected": expected, "payload": rendered},
        )
        self.expected = expected
        self.payload = payload


class PatchError(ModelServerError):
    """Raised when a patch operation cannot be applied to a local model copy."""

    def __init__(self, message: str, *, operation: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.INVALID_ARGS, message, details={"operation": operation} if operation else None)


def render_payload(payload: Any) -> str:
    try:
        return json.dumps(payload, default=str)
    except (TypeError, ValueError):
        return repr(payload)
