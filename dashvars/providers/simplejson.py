"""SimpleJSON data source HTTP client.

Implements `metric_find_query` against a SimpleJSON-style backend:
POST <url>/search with {"target": "<interpolated query>"}. The response is
either a list of strings or a list of {"text", "value"} objects.
"""

import asyncio
import logging
from typing import Any

import httpx

from core import MetricFindQueryOptions, MetricFindValue
from dashvars.config import get_datasource_retries, get_datasource_timeout
from dashvars.providers.registry import DataSourceInstanceSettings

logger = logging.getLogger(__name__)

SIMPLEJSON_PLUGIN_ID = "simplejson"


class SimpleJsonDataSource:
    """Legacy-style data source backed by a SimpleJSON HTTP endpoint."""

    def __init__(
        self,
        settings: DataSourceInstanceSettings,
        timeout: float | None = None,
        retry_count: int | None = None,
        retry_delay: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.uid = settings.uid
        self.name = settings.name
        self.settings = settings
        self._timeout = timeout if timeout is not None else get_datasource_timeout()
        self._retry_count = max(retry_count if retry_count is not None else get_datasource_retries(), 1)
        self._retry_delay = retry_delay
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.url or "",
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, body: dict) -> Any:
        """POST with retry logic.

        Server errors and transport failures are retried; client errors are not.

        Raises:
            httpx.HTTPStatusError: If the final attempt got an error status.
            httpx.RequestError: If the final attempt failed to connect.
        """
        for attempt in range(self._retry_count):
            try:
                response = await self._get_client().post(path, json=body)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                logger.warning("[SIMPLEJSON] HTTP %s for %s%s", e.response.status_code, self.settings.url, path)
                if e.response.status_code < 500 or attempt >= self._retry_count - 1:
                    raise
            except httpx.RequestError as e:
                logger.warning("[SIMPLEJSON] Request failed for %s%s: %s", self.settings.url, path, e)
                if attempt >= self._retry_count - 1:
                    raise
            await asyncio.sleep(self._retry_delay * (attempt + 1))
        return None

    async def metric_find_query(self, query: Any, options: MetricFindQueryOptions) -> list[MetricFindValue]:
        body: dict[str, Any] = {"target": query}
        if options.search_filter:
            body["searchFilter"] = options.search_filter
        if options.range is not None:
            body["range"] = {
                "from": options.range.from_.isoformat(),
                "to": options.range.to.isoformat(),
                "raw": {"from": options.range.raw_from, "to": options.range.raw_to},
            }

        data = await self._post("/search", body)
        return self._to_values(data or [])

    @staticmethod
    def _to_values(data: list[Any]) -> list[MetricFindValue]:
        values = []
        for item in data:
            if isinstance(item, dict):
                text = item.get("text", item.get("value"))
                value = item.get("value", text)
                values.append(MetricFindValue(text=text, value=value))
            else:
                values.append(MetricFindValue(text=item, value=item))
        return values

    async def test_datasource(self) -> dict[str, str]:
        """Health check against the root endpoint."""
        try:
            response = await self._get_client().get("/")
            response.raise_for_status()
        except httpx.HTTPError as e:
            return {"status": "error", "message": str(e)}
        return {"status": "success", "message": "Data source is working"}


def create_simplejson_datasource(settings: DataSourceInstanceSettings) -> SimpleJsonDataSource:
    """Factory for DataSourceRegistry.register."""
    return SimpleJsonDataSource(settings)
