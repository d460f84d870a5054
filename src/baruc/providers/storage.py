"""
Baruc Providers - Cloudinary storage.

Hosts the CSV handed to the chart renderer. Uses Cloudinary's signed upload
API directly over httpx (resource type ``raw``).
"""

from __future__ import annotations

import hashlib
import logging
import time

import httpx

from baruc.config import Settings
from baruc.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/raw/upload"


def sign_params(params: dict[str, str | int], api_secret: str) -> str:
    """Cloudinary signature: sha1 of sorted ``k=v`` pairs joined by ``&`` plus the secret."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in ("", None))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryStorage:
    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.cloud_name = settings.cloudinary.cloud_name
        self.api_key = settings.cloudinary.api_key
        self.api_secret = settings.cloudinary.api_secret
        self.timeout_seconds = settings.cloudinary.timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._client

    async def upload_csv(self, csv_data: str, filename: str | None = None) -> str:
        """Upload CSV text and return its public ``secure_url``."""
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise ExternalServiceException("Cloudinary", "Cloudinary credentials are not configured")

        public_id = filename or f"data_{int(time.time() * 1000)}.csv"
        params: dict[str, str | int] = {"public_id": public_id, "timestamp": int(time.time())}
        form = {
            **{key: str(value) for key, value in params.items()},
            "api_key": self.api_key,
            "signature": sign_params(params, self.api_secret),
        }
        files = {"file": (public_id, csv_data.encode("utf-8"), "text/csv")}

        try:
            response = await self._get_client().post(
                UPLOAD_URL.format(cloud_name=self.cloud_name),
                data=form,
                files=files,
            )
            response.raise_for_status()
            secure_url = response.json().get("secure_url")
        except httpx.HTTPStatusError as e:
            logger.error(f"Cloudinary upload failed {e.response.status_code}: {e.response.text[:200]}")
            raise ExternalServiceException("Cloudinary", f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Cloudinary upload failed: {e}")
            raise ExternalServiceException("Cloudinary", str(e))

        if not secure_url:
            raise ExternalServiceException("Cloudinary", "Upload response has no secure_url")
        logger.info(f"CSV uploaded to Cloudinary: {secure_url}")
        return secure_url

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
