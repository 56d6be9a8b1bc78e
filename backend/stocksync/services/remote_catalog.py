"""HTTP client for the storefront's paginated products collection (WooCommerce REST)."""

from __future__ import annotations

from typing import Any

import httpx

from stocksync.core.config import Settings
from stocksync.core.logging import get_logger

logger = get_logger(__name__)

PRODUCTS_PATH = "/wp-json/wc/v3/products"


class RemoteCatalogError(Exception):
    """Base exception for remote catalog errors."""

    pass


class RemoteCatalogHTTPError(RemoteCatalogError):
    """Raised when the remote API answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int):
        self.status_code = status_code
        super().__init__(message)


class RemoteCatalogDecodeError(RemoteCatalogError):
    """Raised when a response body is not a JSON list of products."""

    pass


class RemoteCatalogClient:
    """Fetches pages of the remote catalog, newest modification first."""

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        *,
        fields: str = "",
        per_page: int = 100,
        timeout: float = 20.0,
        user_agent: str = "stocksync/1.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Storefront base URL (https://shop.example.com).
            consumer_key: REST API key, sent as the Basic auth user.
            consumer_secret: REST API secret, sent as the Basic auth password.
            fields: Comma-separated field list; empty requests every field.
            per_page: Page size.
            timeout: Per-request timeout in seconds.
            user_agent: User-Agent header value.
            transport: Optional httpx transport (tests).
        """
        self.base_url = base_url.rstrip("/")
        self.fields = fields.strip()
        self.per_page = per_page
        self._auth = httpx.BasicAuth(consumer_key, consumer_secret)
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RemoteCatalogClient:
        """Build a client from application settings."""
        return cls(
            config.remote_base_url,
            config.remote_consumer_key,
            config.remote_consumer_secret,
            fields=config.remote_fields,
            per_page=config.remote_per_page,
            timeout=config.remote_timeout,
            user_agent=f"{config.app_name}/{config.version}",
            transport=transport,
        )

    @property
    def products_url(self) -> str:
        return f"{self.base_url}{PRODUCTS_PATH}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                auth=self._auth,
                transport=self._transport,
                headers={
                    "Accept": "application/json",
                    "User-Agent": self._user_agent,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RemoteCatalogClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def page_params(self, page: int) -> dict[str, str]:
        """Query parameters for one page, ordered by modification time descending."""
        params = {
            "orderby": "modified",
            "order": "desc",
            "per_page": str(self.per_page),
            "page": str(page),
        }
        if self.fields:
            params["_fields"] = self.fields
        return params

    async def fetch_page(self, page: int) -> list[dict[str, Any]]:
        """Fetch one page of raw product dicts.

        Returns an empty list past the last page.

        Raises:
            RemoteCatalogHTTPError: On a non-2xx response.
            RemoteCatalogDecodeError: If the body is not a JSON list.
            RemoteCatalogError: On transport failures and timeouts.
        """
        client = await self._get_client()

        try:
            response = await client.get(self.products_url, params=self.page_params(page))
        except httpx.HTTPError as e:
            raise RemoteCatalogError(f"Request for page {page} failed: {e}") from e

        if not response.is_success:
            raise RemoteCatalogHTTPError(
                f"Remote catalog page {page} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            items = response.json()
        except ValueError as e:
            raise RemoteCatalogDecodeError(f"Page {page} is not valid JSON: {e}") from e

        if not isinstance(items, list):
            raise RemoteCatalogDecodeError(
                f"Page {page} returned {type(items).__name__}, expected a list"
            )

        logger.debug("remote_catalog_page_fetched", page=page, items=len(items))
        return items
