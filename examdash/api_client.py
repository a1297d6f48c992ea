"""
API Client - offline-aware requests against the platform backend

Rules:
- Offline mutation (POST/PUT/DELETE/PATCH): queued for replay, caller gets
  {"success": True, "offline": True}
- Successful GET: written through to the offline cache for CACHE_TTL_SECONDS
- Failed GET while offline: served from the cache with "from_cache": True
- Everything else propagates unchanged
"""

from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from examdash.exceptions import ApiError
from examdash.logging_config import logger
from examdash.models import MUTATING_METHODS, now_ms
from examdash.offline.manager import OfflineManager


def cache_key(url: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Cache key for a GET request: the URL plus its sorted query string"""
    if not params:
        return url
    query = urlencode(sorted((k, v) for k, v in params.items() if v is not None), doseq=True)
    if not query:
        return url
    return f"{url}{'&' if '?' in url else '?'}{query}"


class ApiClient:
    """
    Thin wrapper over httpx that routes through the offline manager.

    Usage:
        api = ApiClient(manager)
        categories = await api.get("/categories")
        await api.post("/categories", {"name": "Banking"})
    """

    def __init__(
        self,
        manager: OfflineManager,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.manager = manager
        self.settings = manager.settings
        self.http_client = manager.http_client
        self.on_unauthorized = on_unauthorized

    def _build_headers(self, token: Optional[str], extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        url: str,
        method: str = "GET",
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        method = method.upper()
        token = self.manager.current_token()
        is_online = self.manager.is_online

        if not is_online and method in MUTATING_METHODS:
            await self.manager.queue_offline_action(
                f"{method}_{url}",
                cache_key(url, params),
                method,
                json,
                token,
            )
            return {"success": True, "offline": True}

        try:
            response = await self.http_client.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._build_headers(token, headers),
            )
            data = self._parse(response, url)
        except (httpx.HTTPError, ApiError) as error:
            if not is_online and method == "GET":
                cached = await self.manager.get_offline_data(cache_key(url, params))
                if cached is not None:
                    logger.info(f"Serving cached response for {url}")
                    return self._mark_cached(cached)
            raise

        if method == "GET":
            expiry = now_ms() + self.settings.CACHE_TTL_SECONDS * 1000
            await self.manager.store_offline_data(cache_key(url, params), data, expiry)

        return data

    def _parse(self, response: httpx.Response, url: str) -> Any:
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = response.text

        if not response.is_success:
            if response.status_code == 401:
                self.manager.clear_token()
                if self.on_unauthorized is not None:
                    self.on_unauthorized()
            raise ApiError(response.status_code, body, url)
        return body

    @staticmethod
    def _mark_cached(cached: Any) -> Dict[str, Any]:
        if isinstance(cached, dict):
            return {**cached, "from_cache": True}
        return {"data": cached, "from_cache": True}

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(url, "GET", params=params)

    async def post(self, url: str, data: Any = None) -> Any:
        return await self.request(url, "POST", json=data)

    async def put(self, url: str, data: Any = None) -> Any:
        return await self.request(url, "PUT", json=data)

    async def patch(self, url: str, data: Any = None) -> Any:
        return await self.request(url, "PATCH", json=data)

    async def delete(self, url: str) -> Any:
        return await self.request(url, "DELETE")
