"""Tests for record and collection tools."""

import json

import pytest

from dal.pocketbase import PocketBaseConnectionError, PocketBaseError
from mcp_server.tools import collections, records


async def _ready(instance, **options):
    await instance.coordinator.ensure_initialized(
        instance.coordinator.default_options(require_auth=False, **options)
    )
    return instance.coordinator.backend


class TestRecordTools:
    @pytest.mark.asyncio
    async def test_list_records_envelope(self, make_instance, valid_config):
        instance = make_instance(valid_config)
        backend = await _ready(instance)
        backend.list_records.return_value = {
            "items": [{"id": "a"}, {"id": "b"}],
            "page": 2,
            "perPage": 2,
            "totalItems": 7,
        }

        payload = json.loads(
            await records.build_handlers(instance)["list_records"](
                "posts", page=2, per_page=2, filter='status = "live"'
            )
        )

        assert payload["result"] == [{"id": "a"}, {"id": "b"}]
        metadata = payload["metadata"]
        assert metadata["provider"] == "pocketbase"
        assert metadata["returned_count"] == 2
        assert metadata["items_total"] == 7
        assert metadata["page"] == 2
        assert metadata["per_page"] == 2
        backend.list_records.assert_awaited_once_with(
            "posts", page=2, per_page=2, filter='status = "live"', sort=None, expand=None
        )

    @pytest.mark.asyncio
    async def test_first_call_initializes_lazily(
        self, make_instance, backend_factory, valid_config
    ):
        instance = make_instance(valid_config)
        handlers = records.build_handlers(instance)
        assert backend_factory.connect_calls == 0

        payload = json.loads(await handlers["get_record"]("posts", "r1"))

        assert payload["result"] == {"id": "r1"}
        assert backend_factory.connect_calls == 1

    @pytest.mark.asyncio
    async def test_not_found_maps_to_category(self, make_instance, valid_config):
        instance = make_instance(valid_config)
        backend = await _ready(instance)
        backend.get_record.side_effect = PocketBaseError(
            "The requested resource wasn't found.", status=404
        )

        payload = json.loads(await records.build_handlers(instance)["get_record"]("posts", "zz"))

        error = payload["error"]
        assert error["category"] == "not_found"
        assert error["code"] == "POCKETBASE_NOT_FOUND"
        assert error["retryable"] is False
        assert "result" not in payload

    @pytest.mark.asyncio
    async def test_lost_connection_is_retryable(self, make_instance, valid_config):
        instance = make_instance(valid_config)
        backend = await _ready(instance)
        backend.create_record.side_effect = PocketBaseConnectionError("connection refused")

        payload = json.loads(
            await records.build_handlers(instance)["create_record"]("posts", {"title": "x"})
        )

        assert payload["error"]["category"] == "connectivity"
        assert payload["error"]["retryable"] is True
        # Ready sessions stay ready; the fault is reported on this call only.
        assert instance.coordinator.state.backend_initialized is True

    @pytest.mark.asyncio
    async def test_without_configuration_names_precondition(self, make_instance, backend_factory):
        payload = json.loads(
            await records.build_handlers(make_instance())["list_records"]("posts")
        )

        error = payload["error"]
        assert error["category"] == "configuration"
        assert error["code"] == "CONFIGURATION_UNMET"
        assert error["error_code"] == "CONFIGURATION_ERROR"
        assert "POCKETBASE_URL" in error["hint"]
        assert backend_factory.connect_calls == 0

    @pytest.mark.asyncio
    async def test_unreachable_backend(self, make_instance, backend_factory, valid_config):
        backend_factory.connect_error = PocketBaseConnectionError("host unreachable")

        payload = json.loads(
            await records.build_handlers(make_instance(valid_config))["update_record"](
                "posts", "r1", {"title": "y"}
            )
        )

        assert payload["error"]["category"] == "connectivity"
        assert payload["error"]["code"] == "CONNECTIVITY_UNMET"
        assert "host unreachable" in payload["error"]["message"]

    @pytest.mark.asyncio
    async def test_create_update_delete(self, make_instance, valid_config):
        instance = make_instance(valid_config)
        backend = await _ready(instance)
        handlers = records.build_handlers(instance)

        created = json.loads(await handlers["create_record"]("posts", {"title": "x"}))
        updated = json.loads(await handlers["update_record"]("posts", "r1", {"title": "y"}))
        deleted = json.loads(await handlers["delete_record"]("posts", "r1"))

        assert created["result"] == {"id": "new", "title": "x"}
        assert updated["result"] == {"id": "r1"}
        assert deleted["result"] == {"deleted": True, "collection": "posts", "id": "r1"}
        backend.update_record.assert_awaited_once_with("posts", "r1", {"title": "y"})
        backend.delete_record.assert_awaited_once_with("posts", "r1")


class TestCollectionTools:
    @pytest.mark.asyncio
    async def test_full_list_by_default(self, make_instance, valid_config):
        instance = make_instance(valid_config)
        backend = await _ready(instance)
        backend.get_full_collection_list.return_value = [{"name": "posts"}, {"name": "users"}]

        payload = json.loads(await collections.build_handlers(instance)["list_collections"]())

        assert [c["name"] for c in payload["result"]] == ["posts", "users"]
        assert payload["metadata"]["items_total"] == 2
        backend.list_collections.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_page(self, make_instance, valid_config):
        instance = make_instance(valid_config)
        backend = await _ready(instance)
        backend.list_collections.return_value = {"items": [{"name": "posts"}], "totalItems": 9}

        payload = json.loads(
            await collections.build_handlers(instance)["list_collections"](page=3, sort="-name")
        )

        assert payload["metadata"]["items_total"] == 9
        backend.list_collections.assert_awaited_once_with(
            page=3, per_page=30, filter=None, sort="-name"
        )

    @pytest.mark.asyncio
    async def test_requires_admin(self, make_instance, valid_config):
        instance = make_instance({"pocketbase_url": valid_config["pocketbase_url"]})

        payload = json.loads(await collections.build_handlers(instance)["get_collection"]("posts"))

        error = payload["error"]
        assert error["category"] == "auth"
        assert error["code"] == "AUTHENTICATION_UNMET"
        assert "POCKETBASE_ADMIN_EMAIL" in error["message"]
        # The connection itself succeeded and stays usable for record tools.
        assert instance.coordinator.backend is not None

    @pytest.mark.asyncio
    async def test_rejected_admin_credentials(self, make_instance, backend_factory, valid_config):
        backend_factory.auth_error = PocketBaseError("Failed to authenticate.", status=400)
        instance = make_instance(valid_config)

        payload = json.loads(await collections.build_handlers(instance)["list_collections"]())

        assert payload["error"]["category"] == "auth"
        assert "admin@example.com" in payload["error"]["message"]
        assert backend_factory.connect_calls == 1
