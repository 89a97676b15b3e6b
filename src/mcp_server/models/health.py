"""Initialization state tracking for the MCP server.

The lifecycle coordinator owns one ``InitializationState`` per session. The
boolean flags describe how far the lazy connect/authenticate/activate sequence
got; the per-step checks keep structured detail for the health tools and for
optional services whose failures are recorded but never escalated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class CheckStatus(Enum):
    """Status of an initialization check."""

    PENDING = "pending"
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CheckResult:
    """Result of a single initialization check."""

    name: str
    status: CheckStatus = CheckStatus.PENDING
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    timestamp: Optional[datetime] = None
    required: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "name": self.name,
            "status": self.status.value,
            "required": self.required,
        }
        if self.error_type:
            result["error_type"] = self.error_type
        if self.error_message:
            result["error_message"] = self.error_message
        if self.timestamp:
            result["timestamp"] = self.timestamp.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CheckResult":
        timestamp = data.get("timestamp")
        return cls(
            name=data["name"],
            status=CheckStatus(data.get("status", CheckStatus.PENDING.value)),
            error_type=data.get("error_type"),
            error_message=data.get("error_message"),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
            required=bool(data.get("required", True)),
        )


@dataclass
class InitializationState:
    """Progress of the lazy backend initialization for one session.

    Invariants maintained by the lifecycle coordinator:
    - ``is_authenticated`` implies ``backend_initialized``.
    - ``services_initialized`` only becomes true after ``backend_initialized``.
    - ``has_valid_config`` is written once per configuration load.
    """

    config_loaded: bool = False
    has_valid_config: bool = False
    backend_initialized: bool = False
    is_authenticated: bool = False
    services_initialized: bool = False
    last_error: Optional[str] = None
    checks: Dict[str, CheckResult] = field(default_factory=dict)

    @property
    def is_discovery_mode(self) -> bool:
        """Derived: config loaded but unusable, or a connection attempt failed."""
        if not self.config_loaded:
            return False
        if not self.has_valid_config:
            return True
        return not self.backend_initialized and self.last_error is not None

    @property
    def is_ready(self) -> bool:
        return self.backend_initialized and self.services_initialized

    def record_success(self, name: str, required: bool = True) -> None:
        """Record a successful initialization step.

        Args:
            name: Identifier for the initialization step.
            required: Whether this step is required for readiness.
        """
        self.checks[name] = CheckResult(
            name=name,
            status=CheckStatus.OK,
            timestamp=datetime.now(timezone.utc),
            required=required,
        )
        logger.info("Initialization step '%s' completed successfully", name)

    def record_failure(self, name: str, exc: BaseException, required: bool = True) -> None:
        """Record a failed initialization step.

        Args:
            name: Identifier for the initialization step.
            exc: The exception that caused the failure.
            required: Whether this step is required for readiness.
        """
        self.checks[name] = CheckResult(
            name=name,
            status=CheckStatus.FAILED,
            error_type=type(exc).__name__,
            error_message=str(exc),
            timestamp=datetime.now(timezone.utc),
            required=required,
        )
        log = logger.error if required else logger.warning
        log(
            "Initialization step '%s' failed: %s: %s",
            name,
            type(exc).__name__,
            str(exc),
        )

    def record_skipped(self, name: str, reason: str = "") -> None:
        """Record a skipped initialization step."""
        self.checks[name] = CheckResult(
            name=name,
            status=CheckStatus.SKIPPED,
            error_message=reason if reason else None,
            timestamp=datetime.now(timezone.utc),
            required=False,
        )
        logger.info("Initialization step '%s' skipped: %s", name, reason or "N/A")

    def check_status(self, name: str) -> Optional[CheckStatus]:
        check = self.checks.get(name)
        return check.status if check else None

    @property
    def failed_checks(self) -> list[CheckResult]:
        """Get list of failed initialization checks."""
        return [c for c in self.checks.values() if c.status == CheckStatus.FAILED]

    def reset_backend(self) -> None:
        """Drop everything derived from a backend connection."""
        self.backend_initialized = False
        self.is_authenticated = False
        self.services_initialized = False

    def copy(self) -> "InitializationState":
        return InitializationState.from_dict(self.as_dict())

    def as_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "config_loaded": self.config_loaded,
            "has_valid_config": self.has_valid_config,
            "backend_initialized": self.backend_initialized,
            "is_authenticated": self.is_authenticated,
            "services_initialized": self.services_initialized,
            "last_error": self.last_error,
            "checks": {name: check.to_dict() for name, check in self.checks.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InitializationState":
        return cls(
            config_loaded=bool(data.get("config_loaded", False)),
            has_valid_config=bool(data.get("has_valid_config", False)),
            backend_initialized=bool(data.get("backend_initialized", False)),
            is_authenticated=bool(data.get("is_authenticated", False)),
            services_initialized=bool(data.get("services_initialized", False)),
            last_error=data.get("last_error"),
            checks={
                name: CheckResult.from_dict(check)
                for name, check in (data.get("checks") or {}).items()
            },
        )
