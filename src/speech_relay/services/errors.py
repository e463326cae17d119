"""
Relay error types.

Every failure the relay reports maps to exactly one terminal HTTP response.
The body is always a JSON object with an `error` key, plus `details` for
the internal-error case:

    {"error": "Method not allowed"}
    {"error": "Internal server error", "details": "Expecting value: line 1 column 1 (char 0)"}

Upstream failures are the exception: the provider's body is relayed
verbatim (see UpstreamError), so callers see the authoritative reason.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Machine-readable codes, used in logs and metrics labels."""
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    CREDENTIAL_MISSING = "CREDENTIAL_MISSING"
    INVALID_INPUT = "INVALID_INPUT"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    CLIENT_DISCONNECTED = "CLIENT_DISCONNECTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


INTERNAL_ERROR_MESSAGE = "Internal server error"


class RelayError(Exception):
    """
    Base exception for failures the relay reports to its caller.

    Attributes:
        message: Value of the `error` key in the response body.
        code: Code from ErrorCode.
        status_code: HTTP status of the response.
        details: Optional `details` value.
    """

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Response body for this error."""
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class MethodNotAllowedError(RelayError):
    def __init__(self, method: str = ""):
        super().__init__("Method not allowed", ErrorCode.METHOD_NOT_ALLOWED, 405)
        self.method = method


class CredentialMissingError(RelayError):
    """The upstream credential is not configured. Needs operator action."""

    def __init__(self):
        super().__init__("OpenAI API key not configured", ErrorCode.CREDENTIAL_MISSING, 500)


class InvalidInputError(RelayError):
    """A required request field is missing or has the wrong type."""

    def __init__(self, field: str):
        super().__init__(f"Missing or invalid '{field}' field", ErrorCode.INVALID_INPUT, 400)
        self.field = field


class UpstreamError(RelayError):
    """
    The provider answered with a non-success status.

    `body` holds the provider's raw response body, relayed unchanged with
    the provider's status code.
    """

    def __init__(self, status_code: int, body: bytes):
        super().__init__(
            f"Upstream returned {status_code}",
            ErrorCode.UPSTREAM_ERROR,
            status_code,
        )
        self.body = body


class ClientDisconnectedError(RelayError):
    """The caller went away while the upstream call was in flight."""

    def __init__(self):
        # 499 is the conventional "client closed request" status; nobody
        # receives this response, it only shows up in logs and metrics.
        super().__init__("Client closed request", ErrorCode.CLIENT_DISCONNECTED, 499)


def internal_error(exc: BaseException) -> RelayError:
    """
    Wrap an unexpected exception as the catch-all 500 error.

    `details` is the stringified exception, or its class name when the
    exception has no message.
    """
    return RelayError(
        INTERNAL_ERROR_MESSAGE,
        ErrorCode.INTERNAL_ERROR,
        500,
        details=str(exc) or type(exc).__name__,
    )
