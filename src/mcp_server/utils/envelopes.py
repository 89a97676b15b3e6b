"""Utility functions for tool response envelopes."""

from typing import Any, Optional

from common.models.tool_envelopes import GenericToolMetadata, ToolResponseEnvelope


def tool_success_response(
    result: Any,
    provider: str = "unknown",
    *,
    execution_time_ms: Optional[float] = None,
    discovery_mode: Optional[bool] = None,
    **metadata: Any,
) -> str:
    """Construct a standardized success response envelope."""
    envelope = ToolResponseEnvelope(
        result=result,
        metadata=GenericToolMetadata(
            provider=provider,
            execution_time_ms=execution_time_ms,
            discovery_mode=discovery_mode,
            **metadata,
        ),
    )
    return envelope.model_dump_json(exclude_none=True)
