"""Tests for session serialization and persistence backends."""

import json
from datetime import datetime, timezone

import pytest

from mcp_server.config.settings import Configuration
from mcp_server.models.health import InitializationState
from mcp_server.session.models import Session
from mcp_server.session.store import InMemorySessionRepository, JsonFileSessionRepository


def _session(session_id="s1") -> Session:
    state = InitializationState(
        config_loaded=True, has_valid_config=True, backend_initialized=True
    )
    state.record_success("backend_connect")
    return Session(
        session_id=session_id,
        configuration=Configuration(pocketbase_url="http://pb:8090", smtp_port=465),
        initialization_state=state,
        custom_headers={"X-Tenant": "acme"},
        last_active_time=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )


class TestSessionModel:
    def test_to_dict_is_json_compatible(self):
        payload = _session().to_dict()
        assert json.loads(json.dumps(payload)) == payload

    def test_round_trip(self):
        session = _session()
        assert Session.from_dict(session.to_dict()) == session

    def test_missing_fields_default(self):
        session = Session.from_dict({"session_id": "s9"})

        assert session.configuration is None
        assert session.initialization_state == InitializationState()
        assert session.custom_headers == {}
        assert session.last_active_time.tzinfo is not None

    def test_naive_timestamp_assumed_utc(self):
        session = Session.from_dict({"last_active_time": "2026-01-02T03:04:05"})
        assert session.last_active_time.tzinfo == timezone.utc


class TestInMemoryRepository:
    @pytest.mark.asyncio
    async def test_save_load_delete(self):
        repo = InMemorySessionRepository()
        session = _session()

        await repo.save(session)
        assert await repo.list_ids() == ["s1"]

        loaded = await repo.load("s1")
        assert loaded == session
        assert loaded is not session

        await repo.delete("s1")
        assert await repo.load("s1") is None

    @pytest.mark.asyncio
    async def test_rejects_anonymous_sessions(self):
        with pytest.raises(ValueError):
            await InMemorySessionRepository().save(Session())


class TestJsonFileRepository:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        session = _session("tenant/with:odd chars")
        await JsonFileSessionRepository(str(tmp_path)).save(session)

        repo = JsonFileSessionRepository(str(tmp_path))
        assert await repo.list_ids() == ["tenant/with:odd chars"]
        assert await repo.load("tenant/with:odd chars") == session

    @pytest.mark.asyncio
    async def test_missing_and_delete(self, tmp_path):
        repo = JsonFileSessionRepository(str(tmp_path))

        assert await repo.load("nope") is None
        await repo.delete("nope")

        await repo.save(_session())
        await repo.delete("s1")
        assert await repo.list_ids() == []
