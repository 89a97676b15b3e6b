"""Tests for the central tool registry."""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from mcp_server.session.models import utc_now
from mcp_server.tools.registry import (
    CANONICAL_TOOLS,
    STATUS_RESOURCE_URI,
    Availability,
    get_all_tool_names,
    register_all,
    tool_availability,
    validate_tool_names,
)


class TestRegisterAll:
    def test_registers_every_canonical_tool(self, make_instance):
        mcp = MagicMock()

        registered = register_all(mcp, make_instance())

        assert sorted(registered) == get_all_tool_names()
        assert mcp.tool.call_count == len(CANONICAL_TOOLS)
        names = {call.kwargs["name"] for call in mcp.tool.call_args_list}
        assert names == set(CANONICAL_TOOLS)

    def test_registers_status_resource(self, make_instance):
        mcp = MagicMock()
        register_all(mcp, make_instance(session_id="tenant-1"))

        mcp.resource.assert_called_once_with(STATUS_RESOURCE_URI, mime_type="application/json")
        status_fn = mcp.resource.return_value.call_args.args[0]
        status = json.loads(status_fn())
        assert status["agent"]["session_id"] == "tenant-1"
        assert "initialization" in status

    def test_handlers_keep_their_names(self, make_instance):
        registered = register_all(MagicMock(), make_instance())
        assert registered["list_records"].__name__ == "list_records"

    @pytest.mark.asyncio
    async def test_calls_refresh_activity(self, make_instance):
        instance = make_instance()
        registered = register_all(MagicMock(), instance)
        stale = utc_now() - timedelta(hours=2)
        instance.store.last_active_time = stale

        await registered["discovery_info"]()

        assert instance.store.last_active_time > stale


class TestValidateToolNames:
    def test_exact_match(self):
        assert validate_tool_names(list(CANONICAL_TOOLS)) is True

    def test_missing_and_unknown(self):
        names = [n for n in CANONICAL_TOOLS if n != "get_record"] + ["drop_database"]
        with pytest.raises(ValueError) as excinfo:
            validate_tool_names(names)
        assert "get_record" in str(excinfo.value)
        assert "drop_database" in str(excinfo.value)


class TestToolAvailability:
    def test_before_initialization(self, make_instance):
        coordinator = make_instance().coordinator
        assert tool_availability("health_check", coordinator) is Availability.AVAILABLE
        assert (
            tool_availability("get_record", coordinator)
            is Availability.REQUIRES_INITIALIZATION
        )

    @pytest.mark.asyncio
    async def test_authenticated_session(self, make_instance, valid_config):
        coordinator = make_instance(valid_config).coordinator
        await coordinator.ensure_initialized()

        assert tool_availability("get_collection", coordinator) is Availability.AVAILABLE
        assert tool_availability("delete_record", coordinator) is Availability.AVAILABLE
        assert tool_availability("stripe_get_customer", coordinator) is Availability.UNAVAILABLE
