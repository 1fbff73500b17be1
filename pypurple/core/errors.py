"""
Error Taxonomy

Typed errors raised by the pypurple core, plus the classification predicates
callers use to branch on failure kind without inspecting internals.

Kinds:
- APIError: the remote service answered with a failure status
- AuthenticationError: credential or token failure
- NetworkError: transport-level failure (connection refused, timeout, DNS)
- ConfigurationError: invalid local setup, detected without network I/O
- ValidationError: invalid caller-supplied argument, detected before any request
- OperationCancelledError: the caller's context was cancelled or timed out
"""

from typing import Any, Optional


class PurpleError(Exception):
    """Base class for every error raised by pypurple"""

    @property
    def retryable(self) -> bool:
        return False


class APIError(PurpleError):
    """Failure response from the BSN.cloud API"""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[str] = None,
        retry_after: Optional[float] = None
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or ""
        self.retry_after = retry_after  # seconds, from a Retry-After header
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.details:
            return f"API error {self.status_code} ({self.code}): {self.message} - {self.details}"
        return f"API error {self.status_code} ({self.code}): {self.message}"

    @property
    def retryable(self) -> bool:
        # Server errors and rate limiting
        return self.status_code >= 500 or self.status_code == 429


class AuthenticationError(PurpleError):
    """Credential or token failure"""

    def __init__(self, reason: str, cause: Optional[BaseException] = None):
        self.reason = reason
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.cause is not None:
            return f"authentication failed: {self.reason}: {self.cause}"
        return f"authentication failed: {self.reason}"

    @property
    def status_code(self) -> Optional[int]:
        """HTTP status of the wrapped API error, if any"""
        if isinstance(self.cause, APIError):
            return self.cause.status_code
        return None


class NetworkError(PurpleError):
    """Transport-level failure; always worth another attempt"""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"network error during {self.operation}: {self.cause}"

    @property
    def retryable(self) -> bool:
        return True


class ConfigurationError(PurpleError):
    """Invalid local configuration"""

    def __init__(self, field: str, reason: str, suggestion: str = ""):
        self.field = field
        self.reason = reason
        self.suggestion = suggestion
        super().__init__(str(self))

    def __str__(self) -> str:
        msg = f"configuration error: {self.field} - {self.reason}"
        if self.suggestion:
            msg += f" (suggestion: {self.suggestion})"
        return msg


class ValidationError(PurpleError):
    """Invalid caller-supplied argument"""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"validation error: {self.field}={self.value!r} - {self.reason}"


class OperationCancelledError(PurpleError):
    """The caller's context was cancelled or its deadline passed"""

    def __init__(self, operation: str, reason: str = "cancelled"):
        self.operation = operation
        self.reason = reason
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.operation} aborted: {self.reason}"


def is_api_error(err: object) -> bool:
    return isinstance(err, APIError)


def is_authentication_error(err: object) -> bool:
    """True for credential/token failures, including raw 401/403 API errors"""
    if isinstance(err, AuthenticationError):
        return True
    if isinstance(err, APIError):
        return err.status_code in (401, 403)
    return False


def is_network_error(err: object) -> bool:
    return isinstance(err, NetworkError)


def is_configuration_error(err: object) -> bool:
    return isinstance(err, ConfigurationError)


def is_validation_error(err: object) -> bool:
    return isinstance(err, ValidationError)


def is_cancelled_error(err: object) -> bool:
    return isinstance(err, OperationCancelledError)


def is_retryable_error(err: object) -> bool:
    """True if the failure might succeed on another attempt"""
    return isinstance(err, PurpleError) and err.retryable
