"""Stripe payment tools."""

from typing import Any, Callable, Dict, Optional

from mcp_server.hosting.instance import ServerInstance
from mcp_server.lifecycle.gate import acquire_service
from mcp_server.utils.envelopes import tool_success_response
from mcp_server.utils.errors import exception_response

TOOL_PROVIDER = "stripe"


def build_handlers(instance: ServerInstance) -> Dict[str, Callable]:
    coordinator = instance.coordinator

    async def stripe_create_customer(
        email: str,
        name: Optional[str] = None,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Create a Stripe customer, or return the one already linked to this email."""
        try:
            stripe = await acquire_service(coordinator, "stripe")
            customer = await stripe.create_customer(
                email, name=name, user_id=user_id, metadata=metadata
            )
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="create customer")
        return tool_success_response(customer, provider=TOOL_PROVIDER)

    async def stripe_get_customer(customer_id: str) -> str:
        """Retrieve a Stripe customer by id."""
        try:
            stripe = await acquire_service(coordinator, "stripe")
            customer = await stripe.get_customer(customer_id)
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="get customer")
        return tool_success_response(customer, provider=TOOL_PROVIDER)

    async def stripe_create_payment_intent(
        amount: int,
        currency: str = "usd",
        customer_id: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Create a payment intent.

        Args:
            amount: Amount in the smallest currency unit (cents for USD).
            currency: Three-letter ISO currency code.
            customer_id: Optional Stripe customer id.
            description: Optional description shown on the payment.
            metadata: Optional key/value metadata.
        """
        try:
            stripe = await acquire_service(coordinator, "stripe")
            intent = await stripe.create_payment_intent(
                amount,
                currency=currency,
                customer_id=customer_id,
                description=description,
                metadata=metadata,
            )
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="create payment intent")
        return tool_success_response(intent, provider=TOOL_PROVIDER)

    async def stripe_create_product(
        name: str,
        price: int,
        description: Optional[str] = None,
        currency: str = "usd",
        recurring: bool = False,
        interval: str = "month",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Create a product with a price and store it in PocketBase."""
        try:
            stripe = await acquire_service(coordinator, "stripe")
            product = await stripe.create_product(
                name,
                price,
                description=description,
                currency=currency,
                recurring=recurring,
                interval=interval,
                metadata=metadata,
            )
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="create product")
        return tool_success_response(product, provider=TOOL_PROVIDER)

    return {
        "stripe_create_customer": stripe_create_customer,
        "stripe_get_customer": stripe_get_customer,
        "stripe_create_payment_intent": stripe_create_payment_intent,
        "stripe_create_product": stripe_create_product,
    }
