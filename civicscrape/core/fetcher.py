"""httpx-based Graph API client."""

from typing import Any, AsyncIterator

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from civicscrape.config import ScrapeConfig
from civicscrape.exceptions import ConfigError, NotFoundError, ScrapeError
from civicscrape.logging import get_logger

# Graph API error code for unknown objects / unsupported get requests
GRAPH_UNKNOWN_OBJECT = 100


class TransientGraphError(ScrapeError):
    """Rate limit or server-side failure worth retrying."""


class GraphClient:
    """
    Thin async client for the Facebook Graph API.

    Example:
        async with GraphClient(config) as graph:
            page = await graph.get_object("cnn", fields="id,name")
            async for post in graph.get_edge("cnn/posts"):
                ...
    """

    def __init__(self, config: ScrapeConfig | None = None, http_client: httpx.AsyncClient | None = None):
        """
        Initialize Graph API client.

        Args:
            config: ScrapeConfig instance, uses defaults if None
            http_client: Preconfigured httpx client (tests inject a MockTransport)
        """
        self.config = config or ScrapeConfig()
        self.base_url = f"{self.config.graph_api_url.rstrip('/')}/{self.config.graph_api_version}"
        self._client = http_client or httpx.AsyncClient(timeout=self.config.request_timeout_seconds)
        self._log = get_logger("graph")

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def get_object(self, path: str, **params: Any) -> dict:
        """
        Fetch a single Graph object.

        Args:
            path: Object path relative to the API version, e.g. a page id
            **params: Query parameters such as ``fields``

        Returns:
            Decoded JSON object

        Raises:
            NotFoundError: Object does not exist or is not visible
            ScrapeError: Network or API failure
            ConfigError: No access token configured
        """
        return await self._request(f"{self.base_url}/{path.lstrip('/')}", self._with_token(params))

    async def get_edge(self, path: str, **params: Any) -> AsyncIterator[dict]:
        """
        Iterate every item of a paginated Graph edge, following ``paging.next``.

        Raises:
            NotFoundError: Parent object does not exist
            ScrapeError: Network or API failure
        """
        params.setdefault("limit", self.config.page_limit)
        url: str | None = f"{self.base_url}/{path.lstrip('/')}"
        query: dict | None = self._with_token(params)

        while url:
            payload = await self._request(url, query)
            for item in payload.get("data", []):
                yield item
            url = payload.get("paging", {}).get("next")
            # The next link already carries every query parameter.
            query = None

    def _with_token(self, params: dict) -> dict:
        if not self.config.access_token:
            raise ConfigError("Graph API access token not configured (set CIVICSCRAPE_ACCESS_TOKEN)")
        return {**params, "access_token": self.config.access_token}

    async def _request(self, url: str, params: dict | None) -> dict:
        attempts = self.config.max_retries if self.config.retry_enabled else 1
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential(
                multiplier=self.config.retry_backoff_multiplier,
                exp_base=self.config.retry_backoff_base,
                max=60,
            ),
            retry=retry_if_exception_type(TransientGraphError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._request_once(url, params)

    async def _request_once(self, url: str, params: dict | None) -> dict:
        try:
            response = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise TransientGraphError(f"Graph API timeout: {e}") from e
        except httpx.HTTPError as e:
            raise ScrapeError(f"Graph API request failed: {e}") from e

        status = response.status_code
        if status == 429 or status >= 500:
            self._log.warning("graph_transient_error", path=response.url.path, status=status)
            raise TransientGraphError(f"Graph API returned HTTP {status}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ScrapeError(f"Graph API returned invalid JSON (HTTP {status})") from e

        error = payload.get("error") if isinstance(payload, dict) else None
        if status == 404 or (error and error.get("code") == GRAPH_UNKNOWN_OBJECT):
            raise NotFoundError((error or {}).get("message", f"Graph object not found: {url}"))
        if error or status >= 400:
            message = (error or {}).get("message", f"HTTP {status}")
            raise ScrapeError(f"Graph API error: {message}")
        return payload
