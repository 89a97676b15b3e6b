"""Error taxonomy for lazy backend initialization.

Each error names the precondition that could not be met so that tool
handlers can tell the caller whether to fix configuration, wait for the
backend, supply credentials, or use a different capability.
"""

from typing import Optional

from common.errors.error_codes import ErrorCode
from common.models.error_metadata import ErrorCategory


class InitError(Exception):
    """Base class for lifecycle precondition failures."""

    category: ErrorCategory = ErrorCategory.INTERNAL
    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    precondition: str = "initialization"
    retryable: bool = False

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class ConfigurationError(InitError):
    """Backend URL missing or malformed, or credentials incompletely paired."""

    category = ErrorCategory.CONFIGURATION
    code = ErrorCode.CONFIGURATION_ERROR
    precondition = "configuration"


class ConnectivityError(InitError):
    """The backend could not be reached."""

    category = ErrorCategory.CONNECTIVITY
    code = ErrorCode.CONNECTIVITY_ERROR
    precondition = "connectivity"
    retryable = True


class AuthenticationError(InitError):
    """Admin authentication is required but absent or rejected."""

    category = ErrorCategory.AUTH
    code = ErrorCode.AUTHENTICATION_ERROR
    precondition = "authentication"


class CapabilityUnavailableError(InitError):
    """An optional dependent service (payments, email) is not active."""

    category = ErrorCategory.UNSUPPORTED_CAPABILITY
    code = ErrorCode.CAPABILITY_UNAVAILABLE
    precondition = "capability"

    def __init__(self, service: str, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message, hint=hint)
        self.service = service


class InitializationPendingError(InitError):
    """The caller stopped waiting before the shared attempt finished."""

    category = ErrorCategory.TIMEOUT
    code = ErrorCode.INITIALIZATION_PENDING
    precondition = "initialization"
    retryable = True
