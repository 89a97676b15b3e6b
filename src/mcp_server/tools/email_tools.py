"""Email tools."""

from typing import Any, Callable, Dict, Optional

from mcp_server.hosting.instance import ServerInstance
from mcp_server.lifecycle.gate import acquire_service
from mcp_server.utils.envelopes import tool_success_response
from mcp_server.utils.errors import exception_response

TOOL_PROVIDER = "email"


def build_handlers(instance: ServerInstance) -> Dict[str, Callable]:
    coordinator = instance.coordinator

    async def send_email(
        to: str,
        subject: str,
        html: Optional[str] = None,
        text: Optional[str] = None,
        from_email: Optional[str] = None,
    ) -> str:
        """Send an email with HTML and/or plain-text content."""
        try:
            email = await acquire_service(coordinator, "email")
            log = await email.send_email(to, subject, html=html, text=text, from_email=from_email)
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="send email")
        return tool_success_response(log, provider=email.provider)

    async def send_template_email(
        template: str,
        to: str,
        variables: Optional[Dict[str, Any]] = None,
        from_email: Optional[str] = None,
        custom_subject: Optional[str] = None,
    ) -> str:
        """Render a template from the ``email_templates`` collection and send it.

        Args:
            template: Template name.
            to: Recipient address.
            variables: Values for ``{{placeholders}}`` in subject and body.
            from_email: Sender; defaults to DEFAULT_FROM_EMAIL.
            custom_subject: Subject overriding the template's own.
        """
        try:
            email = await acquire_service(coordinator, "email")
            log = await email.send_template_email(
                template,
                to,
                variables=variables,
                from_email=from_email,
                custom_subject=custom_subject,
            )
        except Exception as e:
            return exception_response(e, provider=TOOL_PROVIDER, action="send template email")
        return tool_success_response(log, provider=email.provider)

    return {
        "send_email": send_email,
        "send_template_email": send_template_email,
    }
