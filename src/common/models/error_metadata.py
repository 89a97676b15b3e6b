"""Structured error metadata models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorCategory(str, Enum):
    """Canonical error categories."""

    CONFIGURATION = "configuration"
    CONNECTIVITY = "connectivity"
    AUTH = "auth"
    UNSUPPORTED_CAPABILITY = "unsupported_capability"
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    DEPENDENCY_FAILURE = "dependency_failure"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


class ToolError(BaseModel):
    """Canonical tool error contract."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    category: ErrorCategory = Field(..., description="Provider-agnostic error category")
    code: Optional[str] = Field(None, description="Stable machine-readable error code")
    error_code: Optional[str] = Field(None, description="Canonical error code from the taxonomy")
    message: str = Field(
        ..., max_length=2048, description="Safe user-facing error message (redacted/bounded)"
    )
    retryable: bool = Field(False, description="Whether the error is retryable")
    details_safe: Optional[dict[str, Any]] = Field(
        None, description="Safe details that can be surfaced to users/agent"
    )
    provider: Optional[str] = Field("unknown", description="Originating provider/system")
    retry_after_seconds: Optional[float] = Field(
        None, description="Suggested delay before retrying"
    )
    hint: Optional[str] = Field(
        None, max_length=2048, description="Provider-specific hint or suggestion"
    )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses/telemetry."""
        return self.model_dump(exclude_none=True)
