"""Async PocketBase REST client.

A thin wrapper around ``httpx.AsyncClient`` covering the endpoints the MCP
tools use: health, superuser authentication, collections and records.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx

from dal.pocketbase.errors import PocketBaseConnectionError, PocketBaseError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
FULL_LIST_BATCH_SIZE = 200


def escape_filter_value(value: str) -> str:
    """Quote a value for use inside a PocketBase filter expression."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _segment(value: Any) -> str:
    """Encode ``value`` as a single URL path segment."""
    encoded = quote(str(value), safe="")
    if encoded.strip(".") == "":
        # "." and ".." would be collapsed by URL normalization.
        encoded = encoded.replace(".", "%2E")
    return encoded


def _parse_base_url(base_url: str) -> httpx.URL:
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise PocketBaseConnectionError(f"Invalid PocketBase URL '{base_url}': {e}")
    if url.scheme not in ("http", "https") or not url.host:
        raise PocketBaseConnectionError(
            f"Invalid PocketBase URL '{base_url}': expected http(s)://host[:port]"
        )
    return url


class PocketBaseClient:
    """Async client for a single PocketBase server."""

    def __init__(
        self,
        base_url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        url = _parse_base_url(base_url)
        self.base_url = str(url).rstrip("/")
        self._custom_headers: Dict[str, str] = dict(headers or {})
        self._token: Optional[str] = None
        self._auth_record: Optional[Dict[str, Any]] = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    # ------------------------------------------------------------------
    # Auth and headers
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def auth_record(self) -> Optional[Dict[str, Any]]:
        return self._auth_record

    @property
    def custom_headers(self) -> Dict[str, str]:
        return dict(self._custom_headers)

    def set_header(self, name: str, value: str) -> None:
        self._custom_headers[name] = value

    def remove_header(self, name: str) -> bool:
        return self._custom_headers.pop(name, None) is not None

    def _headers(self) -> Dict[str, str]:
        headers = dict(self._custom_headers)
        if self._token:
            headers["Authorization"] = self._token
        return headers

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=self._headers()
            )
        except httpx.RequestError as e:
            raise PocketBaseConnectionError(
                f"PocketBase request {method} {path} failed: {type(e).__name__}: {e}"
            ) from e

        if response.status_code == 204 or not response.content:
            if response.is_error:
                raise PocketBaseError(response.reason_phrase, status=response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = response.reason_phrase
            data = None
            if isinstance(payload, dict):
                message = payload.get("message") or message
                data = payload.get("data")
            raise PocketBaseError(message, status=response.status_code, data=data)
        return payload

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Health and authentication
    # ------------------------------------------------------------------

    async def health_check(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/health")

    async def authenticate_superuser(self, identity: str, password: str) -> Dict[str, Any]:
        """Authenticate as a superuser and keep the token for later calls.

        PocketBase >= 0.23 exposes superusers as the ``_superusers`` auth
        collection; older servers use the ``admins`` endpoint. The legacy route
        is tried only when the new one does not exist.
        """
        body = {"identity": identity, "password": password}
        try:
            payload = await self._request(
                "POST", "/api/collections/_superusers/auth-with-password", json=body
            )
            record = payload.get("record")
        except PocketBaseError as e:
            if not e.is_not_found:
                raise
            logger.info("Superuser collection not found; falling back to legacy admins auth")
            payload = await self._request("POST", "/api/admins/auth-with-password", json=body)
            record = payload.get("admin")

        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise PocketBaseError("Authentication response did not include a token", status=500)
        self._token = token
        self._auth_record = record
        return payload

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def list_collections(
        self,
        page: int = 1,
        per_page: int = 30,
        filter: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "GET",
            "/api/collections",
            params={"page": page, "perPage": per_page, "filter": filter, "sort": sort},
        )

    async def get_full_collection_list(self, batch: int = FULL_LIST_BATCH_SIZE) -> List[Dict]:
        items: List[Dict] = []
        page = 1
        while True:
            result = await self.list_collections(page=page, per_page=batch)
            page_items = result.get("items", [])
            items.extend(page_items)
            if len(page_items) < batch or page >= result.get("totalPages", page):
                return items
            page += 1

    async def get_collection(self, id_or_name: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/collections/{_segment(id_or_name)}")

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def list_records(
        self,
        collection: str,
        page: int = 1,
        per_page: int = 30,
        filter: Optional[str] = None,
        sort: Optional[str] = None,
        expand: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "GET",
            f"/api/collections/{_segment(collection)}/records",
            params={
                "page": page,
                "perPage": per_page,
                "filter": filter,
                "sort": sort,
                "expand": expand,
            },
        )

    async def get_first_record(self, collection: str, filter: str) -> Dict[str, Any]:
        """Return the first record matching ``filter`` or raise a 404 error."""
        result = await self.list_records(collection, page=1, per_page=1, filter=filter)
        items = result.get("items") or []
        if not items:
            raise PocketBaseError("The requested resource wasn't found.", status=404)
        return items[0]

    async def get_record(
        self, collection: str, record_id: str, expand: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._request(
            "GET",
            f"/api/collections/{_segment(collection)}/records/{_segment(record_id)}",
            params={"expand": expand},
        )

    async def create_record(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/api/collections/{_segment(collection)}/records", json=data
        )

    async def update_record(
        self, collection: str, record_id: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/api/collections/{_segment(collection)}/records/{_segment(record_id)}",
            json=data,
        )

    async def delete_record(self, collection: str, record_id: str) -> None:
        await self._request(
            "DELETE", f"/api/collections/{_segment(collection)}/records/{_segment(record_id)}"
        )
