"""Typed envelope models for tool IO."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from common.models.error_metadata import ToolError

# Current schema version for future-proofing
CURRENT_SCHEMA_VERSION = "1.0"
CURRENT_TOOL_VERSION = "v1"
T = TypeVar("T")


class GenericToolMetadata(BaseModel):
    """Generic metadata for tool responses."""

    tool_version: str = Field(
        default=CURRENT_TOOL_VERSION,
        description="Semantic version for tool response contract",
    )
    provider: str = Field("unknown", description="Backend or service provider")
    execution_time_ms: Optional[float] = None
    returned_count: Optional[int] = None
    items_total: Optional[int] = None
    page: Optional[int] = None
    per_page: Optional[int] = None
    discovery_mode: Optional[bool] = Field(
        None, description="Set when the response was produced without a live backend"
    )


class ToolResponseEnvelope(BaseModel, Generic[T]):
    """Standardized envelope for tool responses."""

    schema_version: str = Field(default=CURRENT_SCHEMA_VERSION)
    result: Optional[T] = Field(default=None, description="The tool's main output payload")
    metadata: GenericToolMetadata = Field(default_factory=GenericToolMetadata)
    error: Optional[ToolError] = None
