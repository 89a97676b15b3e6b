"""Errors raised by the PocketBase client."""

from typing import Any, Dict, Optional


class PocketBaseError(Exception):
    """A PocketBase API call failed.

    Attributes:
        status: HTTP status returned by the server (0 when no response).
        message: Server supplied message, or a transport description.
        data: Field-level validation details from the response body.
    """

    def __init__(
        self, message: str, status: int = 0, data: Optional[Dict[str, Any]] = None
    ) -> None:
        self.status = status
        self.message = message
        self.data = data or {}
        super().__init__(message if not status else f"{message} (status {status})")

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_auth_error(self) -> bool:
        return self.status in (401, 403)


class PocketBaseConnectionError(PocketBaseError):
    """The backend could not be reached or the base URL is unusable."""
