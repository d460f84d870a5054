"""
Baruc Providers - Chart renderer microservice client.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from baruc.config import Settings
from baruc.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)

IMAGE_URL_PATTERN = re.compile(r"https?://[^\s\"',\]]+\.(?:png|jpg|jpeg|gif|webp)", re.IGNORECASE)


def extract_image_urls(body: str) -> list[str]:
    """Image URLs found anywhere in a response body."""
    return IMAGE_URL_PATTERN.findall(body or "")


class ChartRendererClient:
    """POSTs the CSV location to the renderer and returns the chart image URLs."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.endpoint_url = settings.charts.endpoint_url
        self.timeout_seconds = settings.charts.timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._client

    async def render(self, payload: dict[str, Any]) -> list[str]:
        if not self.endpoint_url:
            raise ExternalServiceException("Chart renderer", "CHARTS_ENDPOINT_URL is not configured")

        logger.info(f"Requesting charts: {payload}")
        try:
            response = await self._get_client().post(self.endpoint_url, json=payload)
        except httpx.HTTPError as e:
            raise ExternalServiceException("Chart renderer", str(e))

        if response.status_code >= 400:
            logger.error(f"Chart renderer error {response.status_code}: {response.text[:300]}")
            raise ExternalServiceException("Chart renderer", f"HTTP {response.status_code} - {response.text[:200]}")

        try:
            result = response.json()
        except ValueError:
            return extract_image_urls(response.text)

        urls = result.get("image_urls") if isinstance(result, dict) else None
        if not urls:
            urls = extract_image_urls(json.dumps(result))
        return list(urls)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
