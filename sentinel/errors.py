"""
Error taxonomy for the completion and report-generation core.

Every failure the core surfaces is a ``ServiceError`` subclass.  Each class
carries a stable ``code`` string so callers (and the streaming ``StreamError``
event) can branch on the failure without ``isinstance`` chains.
"""

from __future__ import annotations


class ErrorCode:
    API_KEY_MISSING = "api_key_missing"
    INVALID_ENDPOINT = "invalid_endpoint"
    TRANSPORT_ERROR = "transport_error"
    MALFORMED_RESPONSE = "malformed_response"
    TOOL_CALL_MALFORMED = "tool_call_malformed"
    TOOL_CALL_ABSENT = "tool_call_absent"
    MISSING_REQUIRED_FIELDS = "missing_required_fields"
    PROTOCOL_VIOLATION = "protocol_violation"


class ServiceError(Exception):
    """Base class for all typed failures raised by the core."""

    code: str = "service_error"


class ApiKeyMissing(ServiceError):
    code = ErrorCode.API_KEY_MISSING

    def __init__(self, message: str = "No API key configured") -> None:
        super().__init__(message)


class InvalidEndpoint(ServiceError):
    code = ErrorCode.INVALID_ENDPOINT

    def __init__(self, url: str) -> None:
        super().__init__(f"Cannot build completion endpoint from {url!r}")
        self.url = url


class TransportError(ServiceError):
    """
    Network-level failure: connection errors, read timeouts and non-2xx
    HTTP statuses.

    ``status_code`` is set when the provider answered with an error status.
    """

    code = ErrorCode.TRANSPORT_ERROR

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.status_code = status_code


class MalformedResponse(ServiceError):
    code = ErrorCode.MALFORMED_RESPONSE


class ToolCallMalformed(ServiceError):
    code = ErrorCode.TOOL_CALL_MALFORMED

    def __init__(self, name: str, detail: str) -> None:
        super().__init__(f"Arguments for tool call {name!r} are not a JSON object: {detail}")
        self.name = name
        self.detail = detail


class ToolCallAbsent(ServiceError):
    code = ErrorCode.TOOL_CALL_ABSENT

    def __init__(self, expected: str, got: str | None = None) -> None:
        if got:
            message = f"Expected a call to {expected!r}, model called {got!r}"
        else:
            message = f"Model did not call {expected!r}"
        super().__init__(message)
        self.expected = expected
        self.got = got


class MissingRequiredFields(ServiceError):
    code = ErrorCode.MISSING_REQUIRED_FIELDS

    def __init__(self, fields: list[str], tool: str | None = None) -> None:
        where = f" in {tool!r} arguments" if tool else ""
        super().__init__(f"Missing required fields{where}: {', '.join(fields)}")
        self.fields = list(fields)
        self.tool = tool


class ProtocolViolation(ServiceError):
    code = ErrorCode.PROTOCOL_VIOLATION
