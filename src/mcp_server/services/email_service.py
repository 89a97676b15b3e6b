"""Email delivery adapter (SMTP or SendGrid).

Templates live in the PocketBase ``email_templates`` collection and use
``{{variable}}`` placeholders. Every send is logged to ``email_logs``.
"""

import asyncio
import logging
import re
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx

from dal.pocketbase import PocketBaseClient, PocketBaseError, escape_filter_value
from mcp_server.config.settings import DEFAULT_SMTP_PORT, Configuration

logger = logging.getLogger(__name__)

TEMPLATES_COLLECTION = "email_templates"
LOGS_COLLECTION = "email_logs"
SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.]*)\s*\}\}")


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{{name}}`` placeholders; unknown names render empty."""

    def _lookup(match: re.Match) -> str:
        value: Any = variables
        for part in match.group(1).split("."):
            if isinstance(value, Mapping) and part in value:
                value = value[part]
            else:
                return ""
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_lookup, template or "")


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    from_email: str
    subject: str
    html: Optional[str] = None
    text: Optional[str] = None


class EmailTransport(Protocol):
    provider: str

    async def send(self, message: OutgoingEmail) -> None: ...


class SmtpTransport:
    """Plain SMTP delivery through the standard library client."""

    provider = "smtp"

    def __init__(self, host: str, port: int, user: str, password: str) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password

    def _send_sync(self, message: OutgoingEmail) -> None:
        msg = EmailMessage()
        msg["Subject"] = message.subject
        msg["From"] = message.from_email
        msg["To"] = message.to
        msg.set_content(message.text or "")
        if message.html:
            msg.add_alternative(message.html, subtype="html")

        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port) as srv:
                srv.login(self.user, self.password)
                srv.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port) as srv:
                srv.starttls()
                srv.login(self.user, self.password)
                srv.send_message(msg)

    async def send(self, message: OutgoingEmail) -> None:
        await asyncio.to_thread(self._send_sync, message)


class SendGridTransport:
    """Delivery through the SendGrid v3 mail API."""

    provider = "sendgrid"

    def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=30.0)

    async def send(self, message: OutgoingEmail) -> None:
        content = []
        if message.text:
            content.append({"type": "text/plain", "value": message.text})
        if message.html:
            content.append({"type": "text/html", "value": message.html})
        payload = {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": message.from_email},
            "subject": message.subject,
            "content": content or [{"type": "text/plain", "value": ""}],
        }
        response = await self._http.post(
            SENDGRID_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        response.raise_for_status()

    async def aclose(self) -> None:
        await self._http.aclose()


class EmailService:
    """Templated and plain email delivery."""

    def __init__(
        self,
        backend: PocketBaseClient,
        transport: EmailTransport,
        default_from: Optional[str] = None,
    ) -> None:
        self._backend = backend
        self._transport = transport
        self._default_from = default_from

    @property
    def provider(self) -> str:
        return self._transport.provider

    @classmethod
    def from_config(cls, backend: PocketBaseClient, config: Configuration) -> "EmailService":
        if config.email_service == "sendgrid":
            if not config.sendgrid_api_key:
                raise ValueError("SENDGRID_API_KEY environment variable is required")
            transport: EmailTransport = SendGridTransport(config.sendgrid_api_key)
        else:
            if not (config.smtp_host and config.smtp_user and config.smtp_password):
                raise ValueError("SMTP configuration environment variables are required")
            transport = SmtpTransport(
                config.smtp_host,
                config.smtp_port or DEFAULT_SMTP_PORT,
                config.smtp_user,
                config.smtp_password,
            )
        return cls(backend, transport, default_from=config.default_from_email)

    async def get_template(self, name: str) -> Dict[str, Any]:
        try:
            return await self._backend.get_first_record(
                TEMPLATES_COLLECTION, f"name = {escape_filter_value(name)}"
            )
        except PocketBaseError as e:
            if e.is_not_found:
                raise LookupError(f"Template not found: {name}") from e
            raise

    async def send_email(
        self,
        to: str,
        subject: str,
        html: Optional[str] = None,
        text: Optional[str] = None,
        from_email: Optional[str] = None,
        template: Optional[str] = None,
    ) -> Dict[str, Any]:
        sender = from_email or self._default_from
        if not sender:
            raise ValueError("from_email is required when DEFAULT_FROM_EMAIL is not set")
        if not html and not text:
            raise ValueError("Either html or text content is required")

        message = OutgoingEmail(to=to, from_email=sender, subject=subject, html=html, text=text)
        status = "sent"
        error: Optional[str] = None
        try:
            await self._transport.send(message)
        except Exception as exc:
            status, error = "failed", str(exc)
            await self._log(message, template, status, error)
            raise
        return await self._log(message, template, status, error)

    async def send_template_email(
        self,
        template: str,
        to: str,
        variables: Optional[Mapping[str, Any]] = None,
        from_email: Optional[str] = None,
        custom_subject: Optional[str] = None,
    ) -> Dict[str, Any]:
        record = await self.get_template(template)
        variables = variables or {}
        subject = render_template(custom_subject or record.get("subject", ""), variables)
        html = render_template(record.get("htmlContent", ""), variables) or None
        text = render_template(record.get("textContent", ""), variables) or None
        return await self.send_email(
            to, subject, html=html, text=text, from_email=from_email, template=template
        )

    async def _log(
        self,
        message: OutgoingEmail,
        template: Optional[str],
        status: str,
        error: Optional[str],
    ) -> Dict[str, Any]:
        entry = {
            "to": message.to,
            "from": message.from_email,
            "subject": message.subject,
            "template": template,
            "status": status,
            "error": error,
            "provider": self.provider,
            "sentAt": datetime.now(timezone.utc).isoformat(),
        }
        try:
            return await self._backend.create_record(LOGS_COLLECTION, entry)
        except PocketBaseError as e:
            # The email went out (or failed) regardless; the log is advisory.
            logger.warning("Failed to write email log: %s", e)
            return entry

    async def aclose(self) -> None:
        closer = getattr(self._transport, "aclose", None)
        if closer is not None:
            await closer()
