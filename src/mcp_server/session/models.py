"""Serializable session model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from mcp_server.config.settings import Configuration
from mcp_server.models.health import InitializationState


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """Everything about one logical server instance that survives eviction.

    Live handles (backend client, service adapters, a pending initialization
    attempt) are never part of a session.
    """

    session_id: Optional[str] = None
    configuration: Optional[Configuration] = None
    initialization_state: InitializationState = field(default_factory=InitializationState)
    custom_headers: Dict[str, str] = field(default_factory=dict)
    last_active_time: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "configuration": self.configuration.to_dict() if self.configuration else None,
            "initialization_state": self.initialization_state.as_dict(),
            "custom_headers": dict(self.custom_headers),
            "last_active_time": self.last_active_time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Session":
        config = data.get("configuration")
        last_active = data.get("last_active_time")
        if last_active:
            parsed = datetime.fromisoformat(last_active)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
        else:
            parsed = utc_now()
        return cls(
            session_id=data.get("session_id"),
            configuration=Configuration.from_dict(config) if config else None,
            initialization_state=InitializationState.from_dict(
                data.get("initialization_state") or {}
            ),
            custom_headers=dict(data.get("custom_headers") or {}),
            last_active_time=parsed,
        )
