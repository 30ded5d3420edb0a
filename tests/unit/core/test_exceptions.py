"""Unit tests for restrpc/core/exceptions.py."""

import pytest
import pytest_check

from restrpc.core.exceptions import (
    ERROR_CODE_HTTP_STATUS,
    ERROR_CODE_MESSAGE,
    HTTP_STATUS_ERROR_CODE,
    ErrorCode,
    RouterDefinitionError,
    RpcError,
    Severity,
    get_error_from_unknown,
)


@pytest.mark.unit
class TestErrorCodeTables:
    """Test the code to status and message tables."""

    def test_every_code_has_status_and_message(self) -> None:
        """The tables cover the whole taxonomy."""
        for code in ErrorCode:
            with pytest_check.check:
                assert code in ERROR_CODE_HTTP_STATUS
            with pytest_check.check:
                assert code in ERROR_CODE_MESSAGE

    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (ErrorCode.PARSE_ERROR, 400),
            (ErrorCode.BAD_REQUEST, 400),
            (ErrorCode.UNAUTHORIZED, 401),
            (ErrorCode.FORBIDDEN, 403),
            (ErrorCode.NOT_FOUND, 404),
            (ErrorCode.PAYLOAD_TOO_LARGE, 413),
            (ErrorCode.UNSUPPORTED_MEDIA_TYPE, 415),
            (ErrorCode.CLIENT_CLOSED_REQUEST, 499),
            (ErrorCode.INTERNAL_SERVER_ERROR, 500),
            (ErrorCode.GATEWAY_TIMEOUT, 504),
        ],
    )
    def test_statuses(self, code: ErrorCode, status: int) -> None:
        """Each code maps to its fixed status."""
        assert ERROR_CODE_HTTP_STATUS[code] == status

    def test_reverse_lookup_prefers_bad_request(self) -> None:
        """400 maps back to BAD_REQUEST, not PARSE_ERROR."""
        assert HTTP_STATUS_ERROR_CODE[400] is ErrorCode.BAD_REQUEST
        assert HTTP_STATUS_ERROR_CODE[404] is ErrorCode.NOT_FOUND


@pytest.mark.unit
class TestRpcError:
    """Test the structured error."""

    def test_default_message(self) -> None:
        """The message defaults to the code's message."""
        error = RpcError(ErrorCode.NOT_FOUND)

        assert error.message == "Not found"
        assert error.http_status == 404
        assert error.cause is None

    def test_code_from_string(self) -> None:
        """String codes are converted to members."""
        assert RpcError("FORBIDDEN").code is ErrorCode.FORBIDDEN

    def test_unknown_code_string(self) -> None:
        """Codes outside the taxonomy are rejected."""
        with pytest.raises(ValueError, match="NOPE"):
            RpcError("NOPE")

    def test_cause_is_chained(self) -> None:
        """The cause becomes ``__cause__``."""
        cause = KeyError("id")
        error = RpcError(ErrorCode.BAD_REQUEST, "Missing id", cause)

        assert error.cause is cause
        assert error.__cause__ is cause

    @pytest.mark.parametrize(
        ("code", "severity", "expected"),
        [
            (ErrorCode.BAD_REQUEST, Severity.LOW, True),
            (ErrorCode.CLIENT_CLOSED_REQUEST, Severity.LOW, True),
            (ErrorCode.INTERNAL_SERVER_ERROR, Severity.HIGH, False),
            (ErrorCode.SERVICE_UNAVAILABLE, Severity.HIGH, False),
        ],
    )
    def test_severity(self, code: ErrorCode, severity: Severity, expected: bool) -> None:
        """Client errors are expected, server errors are not."""
        error = RpcError(code)

        assert error.severity is severity
        assert error.is_expected is expected

    def test_str_and_repr(self) -> None:
        """Both representations name the code."""
        error = RpcError(ErrorCode.CONFLICT, "Already exists", ValueError("dup"))

        assert str(error) == "[CONFLICT] Already exists"
        assert repr(error) == (
            "RpcError(code='CONFLICT', message='Already exists', cause=ValueError('dup'))"
        )


@pytest.mark.unit
class TestRouterDefinitionError:
    """Test router definition errors."""

    def test_is_internal(self) -> None:
        """Definition errors are server errors."""
        error = RouterDefinitionError("Bad path")

        assert error.code is ErrorCode.INTERNAL_SERVER_ERROR
        assert error.http_status == 500

    def test_with_prefix(self) -> None:
        """The prefix names the offending procedure."""
        error = RouterDefinitionError("Bad path").with_prefix("query.users.get")

        assert error.message == "[query.users.get] - Bad path"
        assert str(error) == "[INTERNAL_SERVER_ERROR] [query.users.get] - Bad path"
        assert error.args == ("[query.users.get] - Bad path",)


@pytest.mark.unit
class TestGetErrorFromUnknown:
    """Test conversion of arbitrary exceptions."""

    def test_rpc_errors_pass_through(self) -> None:
        """Structured errors are returned unchanged."""
        error = RpcError(ErrorCode.FORBIDDEN)

        assert get_error_from_unknown(error) is error

    def test_other_errors_are_wrapped(self) -> None:
        """Anything else becomes an internal error."""
        cause = RuntimeError("boom")

        error = get_error_from_unknown(cause)

        assert error.code is ErrorCode.INTERNAL_SERVER_ERROR
        assert error.message == "Internal server error"
        assert error.cause is cause
