"""Tests for the Stripe adapter."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dal.pocketbase import PocketBaseError
from mcp_server.services.stripe_service import StripeService


def _backend(existing=None):
    backend = MagicMock()
    if existing is None:
        backend.get_first_record = AsyncMock(
            side_effect=PocketBaseError("The requested resource wasn't found.", status=404)
        )
    else:
        backend.get_first_record = AsyncMock(return_value=existing)
    backend.create_record = AsyncMock(side_effect=lambda collection, data: {"id": "rec1", **data})
    return backend


@pytest.fixture
def stripe_client():
    client = MagicMock()
    client.customers.create.return_value = {"id": "cus_123"}
    client.customers.retrieve.return_value = {
        "id": "cus_123",
        "email": "jane@example.com",
        "name": "Jane",
        "created": 1700000000,
        "metadata": {"userId": "u1"},
    }
    client.payment_intents.create.return_value = {
        "id": "pi_123",
        "client_secret": "pi_123_secret",
        "status": "requires_payment_method",
    }
    client.products.create.return_value = {"id": "prod_123"}
    client.prices.create.return_value = {"id": "price_123"}
    return client


class TestStripeService:
    def test_rejects_publishable_key(self):
        with pytest.raises(ValueError, match="sk_"):
            StripeService(MagicMock(), "pk_test_123", client=MagicMock())

    @pytest.mark.asyncio
    async def test_create_customer_mirrors_into_pocketbase(self, stripe_client):
        backend = _backend()
        service = StripeService(backend, "sk_test_123", client=stripe_client)

        record = await service.create_customer("jane@example.com", name="Jane", user_id="u1")

        stripe_client.customers.create.assert_called_once_with(
            params={"email": "jane@example.com", "metadata": {"userId": "u1"}, "name": "Jane"}
        )
        collection, data = backend.create_record.await_args.args
        assert collection == "stripe_customers"
        assert data["stripeCustomerId"] == "cus_123"
        assert record["id"] == "rec1"
        assert backend.get_first_record.await_args.args[1] == 'email = "jane@example.com"'

    @pytest.mark.asyncio
    async def test_create_customer_reuses_existing_record(self, stripe_client):
        existing = {"id": "rec0", "stripeCustomerId": "cus_old"}
        service = StripeService(_backend(existing), "sk_test_123", client=stripe_client)

        assert await service.create_customer("jane@example.com") == existing
        stripe_client.customers.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookup_errors_other_than_not_found_propagate(self, stripe_client):
        backend = _backend()
        backend.get_first_record.side_effect = PocketBaseError("Forbidden.", status=403)
        service = StripeService(backend, "sk_test_123", client=stripe_client)

        with pytest.raises(PocketBaseError):
            await service.create_customer("jane@example.com")

    @pytest.mark.asyncio
    async def test_get_customer(self, stripe_client):
        service = StripeService(_backend(), "sk_test_123", client=stripe_client)

        customer = await service.get_customer("cus_123")

        stripe_client.customers.retrieve.assert_called_once_with("cus_123")
        assert customer["email"] == "jane@example.com"
        assert customer["metadata"] == {"userId": "u1"}

    @pytest.mark.asyncio
    async def test_payment_intent(self, stripe_client):
        service = StripeService(_backend(), "sk_test_123", client=stripe_client)

        intent = await service.create_payment_intent(2500, currency="EUR", customer_id="cus_123")

        params = stripe_client.payment_intents.create.call_args.kwargs["params"]
        assert params["amount"] == 2500
        assert params["currency"] == "eur"
        assert params["customer"] == "cus_123"
        assert intent == {
            "paymentIntentId": "pi_123",
            "clientSecret": "pi_123_secret",
            "status": "requires_payment_method",
        }

    @pytest.mark.asyncio
    async def test_payment_intent_rejects_non_positive_amount(self, stripe_client):
        service = StripeService(_backend(), "sk_test_123", client=stripe_client)
        with pytest.raises(ValueError):
            await service.create_payment_intent(0)
        stripe_client.payment_intents.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_recurring_product(self, stripe_client):
        backend = _backend()
        service = StripeService(backend, "sk_test_123", client=stripe_client)

        record = await service.create_product("Pro", 1500, recurring=True, interval="year")

        price_params = stripe_client.prices.create.call_args.kwargs["params"]
        assert price_params == {
            "unit_amount": 1500,
            "currency": "usd",
            "product": "prod_123",
            "recurring": {"interval": "year"},
        }
        assert record["stripePriceId"] == "price_123"
        assert record["interval"] == "year"
        assert backend.create_record.await_args.args[0] == "stripe_products"
