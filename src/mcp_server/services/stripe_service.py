"""Stripe payment adapter.

Customers and products created through the MCP tools are mirrored into
PocketBase collections (``stripe_customers``, ``stripe_products``) so the
backend keeps a local reference to the Stripe ids.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import stripe

from dal.pocketbase import PocketBaseClient, PocketBaseError, escape_filter_value

logger = logging.getLogger(__name__)

CUSTOMERS_COLLECTION = "stripe_customers"
PRODUCTS_COLLECTION = "stripe_products"
DEFAULT_CURRENCY = "usd"


class StripeService:
    """Payment operations backed by the Stripe SDK."""

    def __init__(
        self,
        backend: PocketBaseClient,
        api_key: str,
        client: Optional[stripe.StripeClient] = None,
    ) -> None:
        if not api_key or not api_key.startswith("sk_"):
            raise ValueError("STRIPE_SECRET_KEY must be a secret key starting with 'sk_'")
        self._backend = backend
        self._stripe = client or stripe.StripeClient(api_key)

    async def _call(self, fn, **params: Any) -> Any:
        # The SDK is synchronous; keep it off the event loop.
        return await asyncio.to_thread(fn, params=params)

    async def create_customer(
        self,
        email: str,
        name: Optional[str] = None,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create a Stripe customer, reusing the mirrored record when one exists."""
        try:
            return await self._backend.get_first_record(
                CUSTOMERS_COLLECTION, f"email = {escape_filter_value(email)}"
            )
        except PocketBaseError as e:
            if not e.is_not_found:
                raise

        params: Dict[str, Any] = {
            "email": email,
            "metadata": {"userId": user_id or "", **(metadata or {})},
        }
        if name:
            params["name"] = name
        customer = await self._call(self._stripe.customers.create, **params)

        record = await self._backend.create_record(
            CUSTOMERS_COLLECTION,
            {
                "email": email,
                "name": name,
                "stripeCustomerId": customer["id"],
                "userId": user_id,
                "metadata": metadata or {},
            },
        )
        logger.info("Created Stripe customer %s", customer["id"])
        return record

    async def get_customer(self, customer_id: str) -> Dict[str, Any]:
        customer = await asyncio.to_thread(self._stripe.customers.retrieve, customer_id)
        return {
            "id": customer["id"],
            "email": customer.get("email"),
            "name": customer.get("name"),
            "created": customer.get("created"),
            "metadata": dict(customer.get("metadata") or {}),
        }

    async def create_payment_intent(
        self,
        amount: int,
        currency: str = DEFAULT_CURRENCY,
        customer_id: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if amount <= 0:
            raise ValueError("amount must be a positive integer in the smallest currency unit")
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "metadata": metadata or {},
            "automatic_payment_methods": {"enabled": True},
        }
        if customer_id:
            params["customer"] = customer_id
        if description:
            params["description"] = description
        intent = await self._call(self._stripe.payment_intents.create, **params)
        return {
            "paymentIntentId": intent["id"],
            "clientSecret": intent.get("client_secret"),
            "status": intent.get("status"),
        }

    async def create_product(
        self,
        name: str,
        price: int,
        description: Optional[str] = None,
        currency: str = DEFAULT_CURRENCY,
        recurring: bool = False,
        interval: str = "month",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create a product with one price and mirror both ids into PocketBase."""
        product_params: Dict[str, Any] = {"name": name, "metadata": metadata or {}}
        if description:
            product_params["description"] = description
        product = await self._call(self._stripe.products.create, **product_params)

        price_params: Dict[str, Any] = {
            "unit_amount": price,
            "currency": currency.lower(),
            "product": product["id"],
        }
        if recurring:
            price_params["recurring"] = {"interval": interval}
        stripe_price = await self._call(self._stripe.prices.create, **price_params)

        return await self._backend.create_record(
            PRODUCTS_COLLECTION,
            {
                "name": name,
                "description": description,
                "price": price,
                "currency": currency.lower(),
                "recurring": recurring,
                "interval": interval if recurring else None,
                "stripeProductId": product["id"],
                "stripePriceId": stripe_price["id"],
                "active": True,
                "metadata": metadata or {},
            },
        )
