from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from app.config import DEFAULT_USER_AGENT
from .base import FetchResult


logger = logging.getLogger(__name__)


class PageFetcher:
    """Fetch raw page markup with a browser-like identity.

    Non-2xx responses and transport errors come back as an unavailable
    FetchResult instead of raising; deciding whether that is fatal is the
    caller's job.

    Use as an async context manager to share one connection pool across a run,
    or pass an existing httpx.AsyncClient (tests inject one backed by
    httpx.MockTransport).
    """

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout = float(timeout)
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en,es;q=0.9",
        }
        if headers:
            self.headers.update(headers)
        self._client = client
        self._owns_client = False

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, headers=self.headers, follow_redirects=True)

    async def __aenter__(self) -> "PageFetcher":
        if self._client is None:
            self._client = self._new_client()
            self._owns_client = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def fetch(self, url: str) -> FetchResult:
        if self._client is not None:
            return await self._get(self._client, url)
        async with self._new_client() as client:
            return await self._get(client, url)

    async def _get(self, client: httpx.AsyncClient, url: str) -> FetchResult:
        try:
            resp = await client.get(url, headers=self.headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Fetch failed for %s: %r", url, exc)
            return FetchResult(url=url, status_code=None, reason=str(exc) or exc.__class__.__name__)
        if not resp.is_success:
            reason = resp.reason_phrase or f"HTTP {resp.status_code}"
            logger.warning("Fetch of %s returned %s %s", url, resp.status_code, reason)
            return FetchResult(url=url, status_code=resp.status_code, reason=reason)
        return FetchResult(url=url, status_code=resp.status_code, text=resp.text, reason=resp.reason_phrase)
