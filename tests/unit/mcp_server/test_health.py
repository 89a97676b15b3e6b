"""Tests for initialization state tracking."""

from mcp_server.models.health import CheckStatus, InitializationState


class TestInitializationState:
    """Tests for InitializationState class."""

    def test_fresh_state_is_not_discovery_mode(self):
        """Nothing has been loaded yet, so there is nothing to degrade from."""
        state = InitializationState()
        assert state.is_discovery_mode is False
        assert state.is_ready is False

    def test_invalid_config_is_discovery_mode(self):
        state = InitializationState(config_loaded=True, has_valid_config=False)
        assert state.is_discovery_mode is True

    def test_failed_connect_is_discovery_mode(self):
        state = InitializationState(
            config_loaded=True, has_valid_config=True, last_error="connection refused"
        )
        assert state.is_discovery_mode is True

    def test_auth_failure_after_connect_is_not_discovery_mode(self):
        """A recorded error with a live connection is a partial success."""
        state = InitializationState(
            config_loaded=True,
            has_valid_config=True,
            backend_initialized=True,
            last_error="Admin authentication failed",
        )
        assert state.is_discovery_mode is False

    def test_record_failure_captures_error_details(self):
        """Record failure should capture error type and message."""
        state = InitializationState()
        state.record_failure("backend_connect", RuntimeError("connection refused"))

        check = state.checks["backend_connect"]
        assert check.status == CheckStatus.FAILED
        assert check.error_type == "RuntimeError"
        assert check.error_message == "connection refused"
        assert check.timestamp is not None
        assert state.failed_checks == [check]

    def test_record_skipped_is_optional(self):
        state = InitializationState()
        state.record_skipped("stripe", reason="not configured")

        check = state.checks["stripe"]
        assert check.status == CheckStatus.SKIPPED
        assert check.error_message == "not configured"
        assert check.required is False
        assert state.check_status("stripe") == CheckStatus.SKIPPED
        assert state.check_status("email") is None

    def test_reset_backend_keeps_config_flags(self):
        state = InitializationState(
            config_loaded=True,
            has_valid_config=True,
            backend_initialized=True,
            is_authenticated=True,
            services_initialized=True,
        )
        state.reset_backend()

        assert state.config_loaded is True
        assert state.has_valid_config is True
        assert not (state.backend_initialized or state.is_authenticated)
        assert state.services_initialized is False

    def test_dict_round_trip_is_lossless(self):
        state = InitializationState(config_loaded=True, has_valid_config=True)
        state.record_success("backend_connect")
        state.record_failure("email", ValueError("smtp missing"), required=False)
        state.last_error = "Admin authentication failed: bad password"

        restored = InitializationState.from_dict(state.as_dict())

        assert restored == state
        assert restored.checks["email"].required is False

    def test_copy_is_independent(self):
        state = InitializationState(config_loaded=True)
        clone = state.copy()
        clone.config_loaded = False
        clone.record_success("x")

        assert state.config_loaded is True
        assert "x" not in state.checks
