"""Dependent service activators.

Each activator builds one optional adapter (payments, email) once the backend
connection exists. Activation never raises: missing configuration or a
construction failure yields ``None`` and the reason is kept on the activator
for the coordinator to record.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from dal.pocketbase import PocketBaseClient
from mcp_server.config.settings import Configuration

logger = logging.getLogger(__name__)


class ServiceActivator(ABC):
    """Builds one optional service handle."""

    name: str = ""
    label: str = ""

    def __init__(self) -> None:
        self.last_error: Optional[Exception] = None

    @abstractmethod
    def is_configured(self, config: Configuration) -> bool:
        """Whether enough settings are present to attempt construction."""

    @abstractmethod
    def skip_reason(self, config: Optional[Configuration]) -> str:
        """Explain which settings are missing."""

    @abstractmethod
    async def _build(self, backend: PocketBaseClient, config: Configuration) -> Any:
        """Construct the service handle; may raise."""

    async def try_activate(
        self, backend: PocketBaseClient, config: Configuration
    ) -> Optional[Any]:
        self.last_error = None
        if not self.is_configured(config):
            logger.info("%s service not configured; skipping", self.label)
            return None
        try:
            handle = await self._build(backend, config)
        except Exception as exc:
            self.last_error = exc
            logger.warning("%s service initialization failed: %s", self.label, exc)
            return None
        logger.info("%s service initialized", self.label)
        return handle


class StripeActivator(ServiceActivator):
    name = "stripe"
    label = "Stripe"

    def is_configured(self, config: Configuration) -> bool:
        return bool(config.stripe_secret_key)

    def skip_reason(self, config: Optional[Configuration]) -> str:
        return "Set STRIPE_SECRET_KEY to enable payment tools."

    async def _build(self, backend: PocketBaseClient, config: Configuration) -> Any:
        from mcp_server.services.stripe_service import StripeService

        return StripeService(backend, config.stripe_secret_key)


class EmailActivator(ServiceActivator):
    name = "email"
    label = "Email"

    def is_configured(self, config: Configuration) -> bool:
        return config.has_email_settings

    def skip_reason(self, config: Optional[Configuration]) -> str:
        return (
            "Set EMAIL_SERVICE=sendgrid with SENDGRID_API_KEY, or SMTP_HOST, "
            "SMTP_USER and SMTP_PASSWORD to enable email tools."
        )

    async def _build(self, backend: PocketBaseClient, config: Configuration) -> Any:
        from mcp_server.services.email_service import EmailService

        return EmailService.from_config(backend, config)


def default_activators() -> List[ServiceActivator]:
    return [StripeActivator(), EmailActivator()]
