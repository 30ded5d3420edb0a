"""Structured exception hierarchy for consistent error handling.

This module defines the closed error taxonomy shared by procedure resolvers,
the dispatch pipeline and the OpenAPI generator.

Key components:
- **ErrorCode enum**: Closed set of error identifiers understood by clients
- **Code tables**: Fixed HTTP status and default message for every code
- **Severity enum**: Error classification for logging and alerting
- **RpcError**: Structured error carrying a code, message and optional cause
- **RouterDefinitionError**: Raised when a router cannot be exposed over HTTP

Errors that reach the request boundary are serialized as
``{"message": ..., "code": ..., "issues"?: [...]}`` with the status looked up
in ``ERROR_CODE_HTTP_STATUS``.
"""

from enum import StrEnum
from typing import Final


class ErrorCode(StrEnum):
    """Standardized error codes.

    Every code maps to exactly one HTTP status (``ERROR_CODE_HTTP_STATUS``)
    and one default message (``ERROR_CODE_MESSAGE``).
    """

    PARSE_ERROR = "PARSE_ERROR"
    """The request body could not be parsed."""

    BAD_REQUEST = "BAD_REQUEST"
    """The input did not satisfy the procedure's input schema."""

    UNAUTHORIZED = "UNAUTHORIZED"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    FORBIDDEN = "FORBIDDEN"

    NOT_FOUND = "NOT_FOUND"
    """No procedure is registered for the method and path."""

    METHOD_NOT_SUPPORTED = "METHOD_NOT_SUPPORTED"
    TIMEOUT = "TIMEOUT"
    CONFLICT = "CONFLICT"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"

    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    """The request body exceeded the configured size limit."""

    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    """The request body has a content type the procedure does not accept."""

    UNPROCESSABLE_CONTENT = "UNPROCESSABLE_CONTENT"
    PRECONDITION_REQUIRED = "PRECONDITION_REQUIRED"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"
    CLIENT_CLOSED_REQUEST = "CLIENT_CLOSED_REQUEST"

    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    """An unexpected error occurred, or the router definition is invalid."""

    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    BAD_GATEWAY = "BAD_GATEWAY"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"


ERROR_CODE_HTTP_STATUS: Final[dict[ErrorCode, int]] = {
    ErrorCode.PARSE_ERROR: 400,
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.TIMEOUT: 408,
    ErrorCode.CONFLICT: 409,
    ErrorCode.CLIENT_CLOSED_REQUEST: 499,
    ErrorCode.PRECONDITION_FAILED: 412,
    ErrorCode.PAYLOAD_TOO_LARGE: 413,
    ErrorCode.METHOD_NOT_SUPPORTED: 405,
    ErrorCode.UNSUPPORTED_MEDIA_TYPE: 415,
    ErrorCode.TOO_MANY_REQUESTS: 429,
    ErrorCode.UNPROCESSABLE_CONTENT: 422,
    ErrorCode.NOT_IMPLEMENTED: 501,
    ErrorCode.BAD_GATEWAY: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.GATEWAY_TIMEOUT: 504,
    ErrorCode.PAYMENT_REQUIRED: 402,
    ErrorCode.PRECONDITION_REQUIRED: 428,
}

# PARSE_ERROR shares 400 with BAD_REQUEST; the later BAD_REQUEST entry wins
HTTP_STATUS_ERROR_CODE: Final[dict[int, ErrorCode]] = {
    status: code for code, status in ERROR_CODE_HTTP_STATUS.items()
}

ERROR_CODE_MESSAGE: Final[dict[ErrorCode, str]] = {
    ErrorCode.PARSE_ERROR: "Parse error",
    ErrorCode.BAD_REQUEST: "Bad request",
    ErrorCode.NOT_FOUND: "Not found",
    ErrorCode.INTERNAL_SERVER_ERROR: "Internal server error",
    ErrorCode.UNAUTHORIZED: "Unauthorized",
    ErrorCode.FORBIDDEN: "Forbidden",
    ErrorCode.TIMEOUT: "Timeout",
    ErrorCode.CONFLICT: "Conflict",
    ErrorCode.CLIENT_CLOSED_REQUEST: "Client closed request",
    ErrorCode.PRECONDITION_FAILED: "Precondition failed",
    ErrorCode.PAYLOAD_TOO_LARGE: "Payload too large",
    ErrorCode.METHOD_NOT_SUPPORTED: "Method not supported",
    ErrorCode.TOO_MANY_REQUESTS: "Too many requests",
    ErrorCode.UNPROCESSABLE_CONTENT: "Unprocessable content",
    ErrorCode.NOT_IMPLEMENTED: "Not implemented",
    ErrorCode.BAD_GATEWAY: "Bad gateway",
    ErrorCode.SERVICE_UNAVAILABLE: "Service unavailable",
    ErrorCode.GATEWAY_TIMEOUT: "Gateway timeout",
    ErrorCode.UNSUPPORTED_MEDIA_TYPE: "Unsupported media type",
    ErrorCode.PAYMENT_REQUIRED: "Payment required",
    ErrorCode.PRECONDITION_REQUIRED: "Precondition required",
}

SERVER_ERROR_THRESHOLD: Final[int] = 500


class Severity(StrEnum):
    """Severity levels used when logging errors."""

    LOW = "LOW"
    """Client errors that occur during normal operation (4xx)."""

    HIGH = "HIGH"
    """Server errors that need attention (5xx)."""


class RpcError(Exception):
    """Structured error raised by resolvers and by the dispatch pipeline.

    Resolvers raise ``RpcError`` to choose the HTTP status and message sent to
    the client. Anything else raised inside a procedure is wrapped into an
    ``INTERNAL_SERVER_ERROR`` by ``get_error_from_unknown``.

    Args:
        code: Error code (ErrorCode member or its string value)
        message: Human-readable message. Defaults to the code's default message.
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.code = ErrorCode(code)
        self.message = message if message is not None else ERROR_CODE_MESSAGE[self.code]
        self.cause = cause

        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def http_status(self) -> int:
        """HTTP status derived from the error code."""
        return ERROR_CODE_HTTP_STATUS.get(self.code, SERVER_ERROR_THRESHOLD)

    @property
    def severity(self) -> Severity:
        """LOW for client errors, HIGH for server errors."""
        if self.http_status >= SERVER_ERROR_THRESHOLD:
            return Severity.HIGH
        return Severity.LOW

    @property
    def is_expected(self) -> bool:
        """Expected errors are caused by the client, not by the server."""
        return self.severity is Severity.LOW

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        cause_str = f", cause={self.cause!r}" if self.cause is not None else ""
        return f"{type(self).__name__}(code='{self.code}', message='{self.message}'{cause_str})"


class RouterDefinitionError(RpcError):
    """Raised when a router cannot be indexed or described by OpenAPI.

    Messages carry a ``[{kind}.{procedure_path}] - `` prefix naming the
    offending procedure.

    Args:
        message: Description of the problem
        cause: The original exception that caused this error
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(ErrorCode.INTERNAL_SERVER_ERROR, message, cause)

    def with_prefix(self, procedure_name: str) -> "RouterDefinitionError":
        """Prefix the message with the offending procedure's name.

        Args:
            procedure_name: ``{kind}.{procedure_path}`` of the procedure.

        Returns:
            RouterDefinitionError: This error, for re-raising.
        """
        self.message = f"[{procedure_name}] - {self.message}"
        self.args = (self.message,)
        return self


def get_error_from_unknown(cause: BaseException) -> RpcError:
    """Convert anything raised during dispatch into an RpcError.

    Args:
        cause: The caught exception.

    Returns:
        RpcError: ``cause`` itself when already structured, otherwise an
            INTERNAL_SERVER_ERROR chained to it.
    """
    if isinstance(cause, RpcError):
        return cause

    error = RpcError(ErrorCode.INTERNAL_SERVER_ERROR, "Internal server error", cause)
    error.__traceback__ = cause.__traceback__
    return error
