"""Canonical error-code taxonomy for lifecycle and tool flows."""

from __future__ import annotations

from enum import Enum
from typing import Any

from common.models.error_metadata import ErrorCategory


class ErrorCode(str, Enum):
    """Bounded canonical error codes for external contracts and observability."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CONNECTIVITY_ERROR = "CONNECTIVITY_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    CAPABILITY_UNAVAILABLE = "CAPABILITY_UNAVAILABLE"
    INITIALIZATION_PENDING = "INITIALIZATION_PENDING"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    BACKEND_ERROR = "BACKEND_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_CATEGORY_TO_CODE: dict[str, ErrorCode] = {
    ErrorCategory.CONFIGURATION.value: ErrorCode.CONFIGURATION_ERROR,
    ErrorCategory.CONNECTIVITY.value: ErrorCode.CONNECTIVITY_ERROR,
    ErrorCategory.AUTH.value: ErrorCode.AUTHENTICATION_ERROR,
    ErrorCategory.UNSUPPORTED_CAPABILITY.value: ErrorCode.CAPABILITY_UNAVAILABLE,
    ErrorCategory.TIMEOUT.value: ErrorCode.INITIALIZATION_PENDING,
    ErrorCategory.INVALID_REQUEST.value: ErrorCode.VALIDATION_ERROR,
    ErrorCategory.NOT_FOUND.value: ErrorCode.BACKEND_ERROR,
    ErrorCategory.DEPENDENCY_FAILURE.value: ErrorCode.BACKEND_ERROR,
    ErrorCategory.UNKNOWN.value: ErrorCode.INTERNAL_ERROR,
    ErrorCategory.INTERNAL.value: ErrorCode.INTERNAL_ERROR,
}

_CODE_GROUPS: dict[ErrorCode, str] = {
    ErrorCode.CONFIGURATION_ERROR: "LIFECYCLE",
    ErrorCode.CONNECTIVITY_ERROR: "LIFECYCLE",
    ErrorCode.AUTHENTICATION_ERROR: "LIFECYCLE",
    ErrorCode.INITIALIZATION_PENDING: "LIFECYCLE",
    ErrorCode.CAPABILITY_UNAVAILABLE: "CAPABILITY",
    ErrorCode.VALIDATION_ERROR: "VALIDATION",
    ErrorCode.BACKEND_ERROR: "BACKEND",
    ErrorCode.INTERNAL_ERROR: "INTERNAL",
}


def _normalize_category(category: str | ErrorCategory | None) -> str:
    if isinstance(category, ErrorCategory):
        return category.value
    if category is None:
        return ""
    return str(category).strip()


def canonical_error_code_for_category(
    category: str | ErrorCategory | None,
    *,
    fallback: ErrorCode = ErrorCode.INTERNAL_ERROR,
) -> ErrorCode:
    """Resolve canonical error code from category-like values."""
    normalized = _normalize_category(category)
    if not normalized:
        return fallback
    return _CATEGORY_TO_CODE.get(normalized, fallback)


def parse_error_code(
    value: Any,
    *,
    fallback: ErrorCode = ErrorCode.INTERNAL_ERROR,
) -> ErrorCode:
    """Parse string-like values to `ErrorCode` with safe fallback."""
    if isinstance(value, ErrorCode):
        return value
    if value is None:
        return fallback
    try:
        return ErrorCode(str(value).strip())
    except ValueError:
        return fallback


def error_code_group(value: Any) -> str:
    """Return a stable coarse grouping for telemetry dimensions."""
    parsed = parse_error_code(value)
    return _CODE_GROUPS.get(parsed, "INTERNAL")
