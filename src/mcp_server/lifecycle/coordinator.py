"""Lazy backend lifecycle coordinator.

Nothing touches the network when an instance is constructed. The first tool
call that needs the backend resolves configuration, connects, authenticates
and activates the optional services; every later call takes the fast path.
Concurrent first calls share one attempt through ``SingleFlight``.

When configuration is missing or the connection fails the coordinator falls
back to discovery mode: catalog and introspection calls keep working and only
operational calls surface an error naming the unmet precondition.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from dal.pocketbase import PocketBaseClient
from mcp_server.config.settings import (
    ConfigResolution,
    Configuration,
    OverrideSource,
    resolve_configuration,
)
from mcp_server.lifecycle.errors import (
    AuthenticationError,
    CapabilityUnavailableError,
    ConfigurationError,
    ConnectivityError,
    InitError,
    InitializationPendingError,
)
from mcp_server.lifecycle.single_flight import SingleFlight
from mcp_server.models.health import CheckStatus, InitializationState
from mcp_server.services.activators import ServiceActivator, default_activators

logger = logging.getLogger(__name__)

DEFAULT_INIT_TIMEOUT_MS = 10_000

BackendFactory = Callable[..., PocketBaseClient]
ConfigResolver = Callable[[OverrideSource], ConfigResolution]


@dataclass(frozen=True)
class InitOptions:
    """Per-call requirements for ``ensure_initialized``.

    Attributes:
        timeout_ms: Upper bound on how long this caller waits for a shared
            attempt. The attempt itself is not cancelled.
        require_auth: Caller needs an authenticated (admin) backend session.
        as_admin: Caller performs a superuser-only operation.
        allow_discovery_mode: Caller is discovery-sensitive (catalog,
            introspection). Such callers never see an exception, and in
            discovery mode they force a fresh attempt.
    """

    timeout_ms: int = DEFAULT_INIT_TIMEOUT_MS
    require_auth: bool = True
    as_admin: bool = False
    allow_discovery_mode: bool = False

    @property
    def needs_auth(self) -> bool:
        return self.require_auth or self.as_admin


class LifecycleCoordinator:
    """Owns the backend handle, service handles and ``InitializationState``."""

    def __init__(
        self,
        *,
        config_override: OverrideSource = None,
        activators: Optional[Iterable[ServiceActivator]] = None,
        resolver: ConfigResolver = resolve_configuration,
        backend_factory: BackendFactory = PocketBaseClient,
        request_timeout_seconds: float = 30.0,
        default_timeout_ms: int = DEFAULT_INIT_TIMEOUT_MS,
        custom_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._state = InitializationState()
        self._configuration: Optional[Configuration] = None
        self._config_override = config_override
        self._resolver = resolver
        self._backend_factory = backend_factory
        self._request_timeout_seconds = request_timeout_seconds
        self._default_timeout_ms = default_timeout_ms
        self._custom_headers: Dict[str, str] = dict(custom_headers or {})
        self._activators: List[ServiceActivator] = (
            list(activators) if activators is not None else default_activators()
        )

        self._backend: Optional[PocketBaseClient] = None
        self._retired_backends: List[PocketBaseClient] = []
        self._services: Dict[str, Any] = {}
        self._flight: SingleFlight[None] = SingleFlight("backend_initialization")
        self._last_failure: Optional[InitError] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> InitializationState:
        """Live state. Callers outside the coordinator must treat it as read-only."""
        return self._state

    @property
    def configuration(self) -> Optional[Configuration]:
        return self._configuration

    @property
    def backend(self) -> Optional[PocketBaseClient]:
        return self._backend

    @property
    def is_discovery_mode(self) -> bool:
        return self._state.is_discovery_mode

    @property
    def needs_reconnect(self) -> bool:
        """State claims a connection this instance does not actually hold."""
        return self._state.backend_initialized and self._backend is None

    @property
    def in_flight(self) -> bool:
        return self._flight.in_flight

    @property
    def attempts_started(self) -> int:
        return self._flight.attempts_started

    @property
    def custom_headers(self) -> Dict[str, str]:
        return dict(self._custom_headers)

    def service(self, name: str) -> Optional[Any]:
        return self._services.get(name)

    def default_options(self, **overrides: Any) -> InitOptions:
        overrides.setdefault("timeout_ms", self._default_timeout_ms)
        return InitOptions(**overrides)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def ensure_initialized(self, options: Optional[InitOptions] = None) -> None:
        """Bring the backend up lazily, at most one attempt at a time.

        Raises:
            InitError: only for operational callers (``allow_discovery_mode``
                false) whose precondition could not be met by the attempt.
        """
        opts = options or self.default_options()
        state = self._state

        if state.is_discovery_mode and not opts.allow_discovery_mode:
            return

        if self._is_satisfied(opts):
            return

        if not state.config_loaded:
            self._load_configuration()
            if not state.has_valid_config:
                logger.warning("event=discovery_mode reason=invalid_configuration")
                return

        if not state.has_valid_config:
            return

        if self._backend is not None and state.services_initialized:
            # Ready but without the requested auth level; Ready is not re-entered.
            self._check_auth(opts)
            return

        try:
            await self._flight.run(self._initialize, timeout_seconds=opts.timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning(
                "event=init_wait_timeout timeout_ms=%d attempt_pending=%s",
                opts.timeout_ms,
                self._flight.in_flight,
            )
            if opts.allow_discovery_mode:
                return
            raise InitializationPendingError(
                f"Backend initialization still in progress after {opts.timeout_ms} ms.",
                hint="Configuration pending; retry the call shortly.",
            )
        except InitError:
            if opts.allow_discovery_mode:
                return
            raise

        self._check_auth(opts)

    def _is_satisfied(self, opts: InitOptions) -> bool:
        state = self._state
        if not state.backend_initialized or self._backend is None:
            return False
        return state.is_authenticated or not opts.needs_auth

    def _check_auth(self, opts: InitOptions) -> None:
        if not opts.needs_auth or self._state.is_authenticated:
            return
        if opts.allow_discovery_mode:
            return
        raise AuthenticationError(self._auth_failure_message())

    def _auth_failure_message(self) -> str:
        config = self._configuration
        if config is None or not config.has_admin_credentials:
            return (
                "Admin authentication required but POCKETBASE_ADMIN_EMAIL and "
                "POCKETBASE_ADMIN_PASSWORD are not configured."
            )
        check = self._state.checks.get("admin_auth")
        detail = check.error_message if check and check.error_message else "unknown error"
        return f"Admin authentication failed for {config.admin_email}: {detail}"

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _load_configuration(self) -> ConfigResolution:
        resolution = self._resolver(self._config_override)
        self._configuration = resolution.configuration
        self._state.config_loaded = True
        self._state.has_valid_config = resolution.is_valid
        self._state.last_error = resolution.error_text
        if resolution.is_valid:
            self._state.record_success("configuration")
        else:
            self._state.record_failure(
                "configuration", ConfigurationError(resolution.error_text or "invalid")
            )
        return resolution

    async def configure(self, override: OverrideSource) -> ConfigResolution:
        """Load a new operator-supplied configuration.

        Drops the current connection and service handles. The next call with
        ``allow_discovery_mode`` (or any operational call, when the new
        configuration is valid) connects with the new settings.
        """
        await self._flight.wait()
        # No suspension until the new configuration is in place, so a
        # concurrent caller cannot reconnect with the old one.
        self._retire_backend()
        self._services.clear()
        self._last_failure = None
        self._config_override = override
        self._state.reset_backend()
        self._state.config_loaded = False
        resolution = self._load_configuration()
        await self._close_retired()
        return resolution

    # ------------------------------------------------------------------
    # Staged attempt
    # ------------------------------------------------------------------

    async def _initialize(self) -> None:
        tracer = trace.get_tracer("mcp.lifecycle")
        with tracer.start_as_current_span("lifecycle.initialize") as span:
            state = self._state
            config = self._configuration

            await self._close_backend()
            self._services.clear()
            state.reset_backend()
            state.last_error = None
            self._last_failure = None
            logger.info("event=init_started")

            try:
                backend = await self._connect(config)
            except InitError as error:
                self._record_connect_failure(error, error)
                span.set_status(Status(StatusCode.ERROR, error.message))
                raise error
            except Exception as exc:
                error = ConnectivityError(f"Failed to initialize PocketBase: {exc}")
                self._record_connect_failure(error, exc)
                span.set_status(Status(StatusCode.ERROR, error.message))
                raise error from exc

            self._backend = backend
            authenticated = await self._authenticate(backend, config)
            state.backend_initialized = True
            state.is_authenticated = authenticated
            span.set_attribute("lifecycle.authenticated", authenticated)

            await self._activate_services(backend, config)
            state.services_initialized = True
            span.set_attribute("lifecycle.services", ",".join(sorted(self._services)))
            logger.info(
                "event=init_completed authenticated=%s services=%s",
                authenticated,
                sorted(self._services),
            )

    def _record_connect_failure(self, error: InitError, exc: BaseException) -> None:
        self._state.last_error = error.message
        self._state.record_failure("backend_connect", exc)
        self._last_failure = error
        logger.warning("event=discovery_mode reason=connect_failed error=%s", error.message)

    async def _connect(self, config: Optional[Configuration]) -> PocketBaseClient:
        if config is None or not config.pocketbase_url:
            raise ConfigurationError("PocketBase URL is required for initialization")

        logger.info("Connecting to PocketBase at %s...", config.pocketbase_url)
        backend = self._backend_factory(
            config.pocketbase_url,
            headers=self._custom_headers,
            timeout=self._request_timeout_seconds,
        )
        self._state.record_success("backend_connect")

        # Liveness is not guaranteed to be reachable before auth on every
        # deployment, so a failed probe only gets logged.
        try:
            await backend.health_check()
            self._state.record_success("health_probe", required=False)
        except Exception as exc:
            self._state.record_failure("health_probe", exc, required=False)
        return backend

    async def _authenticate(self, backend: PocketBaseClient, config: Configuration) -> bool:
        if not config.has_admin_credentials:
            self._state.record_skipped("admin_auth", "admin credentials not configured")
            return False
        try:
            await backend.authenticate_superuser(config.admin_email, config.admin_password)
        except Exception as exc:
            self._state.record_failure("admin_auth", exc, required=False)
            self._state.last_error = f"Admin authentication failed: {exc}"
            logger.warning("Continuing without admin authentication")
            return False
        self._state.record_success("admin_auth")
        return True

    async def _activate_services(self, backend: PocketBaseClient, config: Configuration) -> None:
        for activator in self._activators:
            try:
                handle = await activator.try_activate(backend, config)
            except Exception as exc:
                self._state.record_failure(activator.name, exc, required=False)
                continue

            if handle is not None:
                self._services[activator.name] = handle
                self._state.record_success(activator.name, required=False)
            elif activator.last_error is not None:
                self._state.record_failure(activator.name, activator.last_error, required=False)
            else:
                self._state.record_skipped(activator.name, activator.skip_reason(config))

    # ------------------------------------------------------------------
    # Gate support
    # ------------------------------------------------------------------

    def unmet_precondition(self) -> InitError:
        """Describe why no backend handle is available."""
        state = self._state
        if not state.config_loaded:
            return InitializationPendingError("Backend initialization has not run yet.")
        if not state.has_valid_config:
            return ConfigurationError(
                state.last_error or "Server configuration is invalid.",
                hint="Set POCKETBASE_URL or call configure_server.",
            )
        if self._last_failure is not None:
            return self._last_failure
        if state.last_error:
            return ConnectivityError(state.last_error)
        if self._flight.in_flight:
            return InitializationPendingError("Backend initialization is in progress.")
        return ConnectivityError("PocketBase not initialized")

    def capability_gap(self, name: str) -> CapabilityUnavailableError:
        """Explain why the named dependent service is not active."""
        check = self._state.checks.get(name)
        activator = next((a for a in self._activators if a.name == name), None)
        label = activator.label if activator else name
        if check is not None and check.status == CheckStatus.FAILED:
            return CapabilityUnavailableError(
                name, f"{label} service unavailable: {check.error_message}"
            )
        hint = activator.skip_reason(self._configuration) if activator else None
        return CapabilityUnavailableError(
            name, f"{label} service is not configured.", hint=hint
        )

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------

    def set_custom_header(self, name: str, value: str) -> None:
        self._custom_headers[name] = value
        if self._backend is not None:
            self._backend.set_header(name, value)

    def remove_custom_header(self, name: str) -> bool:
        removed = self._custom_headers.pop(name, None) is not None
        if self._backend is not None:
            self._backend.remove_header(name)
        return removed

    # ------------------------------------------------------------------
    # Snapshot / restore
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple[InitializationState, Optional[Configuration], Dict[str, str]]:
        """Copy of the persistable state; handles are not part of it."""
        return self._state.copy(), self._configuration, dict(self._custom_headers)

    def restore(
        self,
        state: InitializationState,
        configuration: Optional[Configuration],
        custom_headers: Mapping[str, str],
    ) -> None:
        """Replace in-memory state wholesale without reconnecting."""
        self._retire_backend()
        self._services.clear()
        self._last_failure = None
        self._state = state.copy()
        self._configuration = configuration
        self._custom_headers = dict(custom_headers)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def _retire_backend(self) -> None:
        if self._backend is not None:
            self._retired_backends.append(self._backend)
            self._backend = None

    async def _close_retired(self) -> None:
        backends = self._retired_backends
        self._retired_backends = []
        for backend in backends:
            try:
                await backend.aclose()
            except Exception as exc:
                logger.warning("Error closing PocketBase client: %s", exc)

    async def _close_backend(self) -> None:
        self._retire_backend()
        await self._close_retired()

    async def close(self) -> None:
        """Release the backend connection and any service resources."""
        for name, handle in list(self._services.items()):
            closer = getattr(handle, "aclose", None)
            if closer is None:
                continue
            try:
                await closer()
            except Exception as exc:
                logger.warning("Error closing %s service: %s", name, exc)
        self._services.clear()
        await self._close_backend()

    def describe(self) -> Dict[str, Any]:
        return {
            "discovery_mode": self.is_discovery_mode,
            "initialization": self._state.as_dict(),
            "services": {
                "pocketbase": self._backend is not None,
                **{a.name: a.name in self._services for a in self._activators},
            },
            "configuration": (
                self._configuration.describe() if self._configuration else {"has_config": False}
            ),
            "custom_headers": sorted(self._custom_headers),
        }
