"""Shared error construction helpers for MCP tool handlers.

Provides a consistent error envelope so the client never has to special-case
error parsing across different tools.
"""

import logging
from typing import Optional

import httpx
import stripe

from common.errors.error_codes import ErrorCode, canonical_error_code_for_category
from common.models.error_metadata import ErrorCategory, ToolError
from common.models.tool_envelopes import GenericToolMetadata, ToolResponseEnvelope
from common.sanitization.text import redact_sensitive_info
from dal.pocketbase import PocketBaseConnectionError, PocketBaseError
from mcp_server.lifecycle.errors import InitError

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 2048


def sanitize_error_message(message: str, fallback: str = "Request failed.") -> str:
    """Redact and bound user-facing error text."""
    safe_text = redact_sensitive_info((message or "").strip())
    if not safe_text:
        safe_text = fallback
    return safe_text[:MAX_ERROR_MESSAGE_LENGTH]


def build_error_metadata(
    *,
    message: str,
    category: ErrorCategory,
    provider: Optional[str],
    retryable: bool = False,
    retry_after_seconds: Optional[float] = None,
    code: Optional[str] = None,
    error_code: Optional[str] = None,
    hint: Optional[str] = None,
) -> ToolError:
    """Build bounded, redacted ToolError."""
    safe_hint = sanitize_error_message(hint, fallback="") if hint else None
    canonical = error_code or canonical_error_code_for_category(category).value
    return ToolError(
        category=category,
        code=code or "TOOL_ERROR",
        error_code=canonical or ErrorCode.INTERNAL_ERROR.value,
        message=sanitize_error_message(message),
        retryable=retryable,
        provider=provider or "unknown",
        retry_after_seconds=retry_after_seconds,
        hint=safe_hint or None,
        details_safe={"hint": safe_hint} if safe_hint else None,
    )


def tool_error_response(
    *,
    message: str,
    code: str,
    error_code: Optional[str] = None,
    category: ErrorCategory = ErrorCategory.INVALID_REQUEST,
    provider: Optional[str] = None,
    retryable: bool = False,
    retry_after_seconds: Optional[float] = None,
    hint: Optional[str] = None,
    discovery_mode: Optional[bool] = None,
) -> str:
    """Construct a structured JSON error response for an MCP tool.

    Args:
        message: Human-readable error description (max 2048 chars).
        code: Machine-readable error code (e.g. "POCKETBASE_NOT_FOUND").
        category: Provider-agnostic error category.
        provider: Originating service / provider name.
        retryable: Whether the caller should retry.
        retry_after_seconds: Optional backoff hint.
        hint: Optional remediation hint.
        discovery_mode: Set when the server answered without a live backend.
    """
    envelope = ToolResponseEnvelope(
        result=None,
        metadata=GenericToolMetadata(provider=provider or "unknown", discovery_mode=discovery_mode),
        error=build_error_metadata(
            message=message,
            category=category,
            provider=provider,
            retryable=retryable,
            retry_after_seconds=retry_after_seconds,
            code=code,
            error_code=error_code,
            hint=hint,
        ),
    )
    return envelope.model_dump_json(exclude_none=True)


def init_error_response(
    error: InitError, provider: str = "pocketbase", discovery_mode: Optional[bool] = None
) -> str:
    """Convert a lifecycle precondition failure into an error envelope."""
    return tool_error_response(
        message=error.message,
        code=f"{error.precondition.upper()}_UNMET",
        error_code=error.code.value,
        category=error.category,
        provider=getattr(error, "service", None) or provider,
        retryable=error.retryable,
        hint=error.hint,
        discovery_mode=discovery_mode,
    )


def _pocketbase_category(error: PocketBaseError) -> ErrorCategory:
    if isinstance(error, PocketBaseConnectionError):
        return ErrorCategory.CONNECTIVITY
    if error.is_not_found:
        return ErrorCategory.NOT_FOUND
    if error.is_auth_error:
        return ErrorCategory.AUTH
    if 400 <= error.status < 500:
        return ErrorCategory.INVALID_REQUEST
    return ErrorCategory.DEPENDENCY_FAILURE


def exception_response(exc: Exception, provider: str, action: str) -> str:
    """Map an exception raised inside a tool handler onto an error envelope."""
    if isinstance(exc, InitError):
        return init_error_response(exc, provider=provider)

    if isinstance(exc, PocketBaseError):
        category = _pocketbase_category(exc)
        return tool_error_response(
            message=f"Failed to {action}: {exc}",
            code=f"POCKETBASE_{category.value.upper()}",
            category=category,
            provider="pocketbase",
            retryable=category
            in (ErrorCategory.CONNECTIVITY, ErrorCategory.DEPENDENCY_FAILURE),
        )

    if isinstance(exc, LookupError):
        return tool_error_response(
            message=str(exc),
            code="NOT_FOUND",
            category=ErrorCategory.NOT_FOUND,
            provider=provider,
        )

    if isinstance(exc, ValueError):
        return tool_error_response(
            message=str(exc),
            code="INVALID_ARGUMENT",
            category=ErrorCategory.INVALID_REQUEST,
            provider=provider,
        )

    if isinstance(exc, httpx.HTTPError):
        return tool_error_response(
            message=f"Failed to {action}: {exc}",
            code="UPSTREAM_HTTP_ERROR",
            category=ErrorCategory.DEPENDENCY_FAILURE,
            provider=provider,
            retryable=True,
        )

    if isinstance(exc, stripe.StripeError):
        return tool_error_response(
            message=f"Failed to {action}: {exc.user_message or exc}",
            code="STRIPE_ERROR",
            category=ErrorCategory.DEPENDENCY_FAILURE,
            provider="stripe",
            retryable=isinstance(exc, (stripe.APIConnectionError, stripe.RateLimitError)),
        )

    if isinstance(exc, OSError):
        # smtplib errors and socket failures from the SMTP transport
        return tool_error_response(
            message=f"Failed to {action}: {exc}",
            code="UPSTREAM_IO_ERROR",
            category=ErrorCategory.DEPENDENCY_FAILURE,
            provider=provider,
            retryable=True,
        )

    logger.exception("Unexpected error while trying to %s", action)
    return tool_error_response(
        message=f"Failed to {action}: {exc}",
        code="INTERNAL_ERROR",
        category=ErrorCategory.INTERNAL,
        provider=provider,
    )
