"""
Charts workflow.

Sheets CSV (cumulative window + yesterday's orders) → Cloudinary → chart
renderer → image URLs → base64 media for WhatsApp.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from dataclasses import dataclass

import httpx

from baruc.core.conversation.vocabulary import plural_weeks
from baruc.core.intents import MAX_PERIOD_WEEKS, MIN_PERIOD_WEEKS, clamp_period
from baruc.providers import ChartRendererClient, CloudinaryStorage, GoogleSheetsProvider
from baruc.whatsapp.transport import MediaPayload

logger = logging.getLogger(__name__)


@dataclass
class ChartDescriptor:
    url: str
    title: str
    country: str
    type: str
    period: int


def validate_period(period: int) -> int:
    if period < MIN_PERIOD_WEEKS:
        logger.info(f"Period {period} below minimum, using {MIN_PERIOD_WEEKS} week")
    elif period > MAX_PERIOD_WEEKS:
        logger.info(f"Period limited from {period} to {MAX_PERIOD_WEEKS} weeks (maximum available)")
    return clamp_period(period)


class ChartsService:
    """Genera las gráficas y las descarga como media lista para enviar."""

    def __init__(
        self,
        sheets: GoogleSheetsProvider,
        storage: CloudinaryStorage,
        renderer: ChartRendererClient,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.sheets = sheets
        self.storage = storage
        self.renderer = renderer
        self._http = http_client

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(30.0), follow_redirects=True)
        return self._http

    async def generate_charts(self, tipo: str, period: int = 4) -> list[ChartDescriptor]:
        period = validate_period(period)
        logger.info(f"Generating charts: tipo={tipo}, period={period} weeks (cumulative)")

        csv_data = await self.sheets.get_data_as_csv(period, include_yesterday=True)
        filename = f"data_{tipo}_{period}w_cumulative_{int(time.time() * 1000)}.csv"
        csv_url = await self.storage.upload_csv(csv_data, filename)

        payload = {
            "csv_url": csv_url,
            "tipo": tipo,
            "periodo": period,
            "cumulative": True,
            "include_orders_y": True,
            "descripcion": f"Gráficas {tipo} - {plural_weeks(period)} (acumulativo + ORDERS_Y)",
        }
        urls = await self.renderer.render(payload)
        if not urls:
            logger.warning("Renderer returned no images")
            return []

        logger.info(f"Renderer returned {len(urls)} charts")
        return [
            ChartDescriptor(
                url=url,
                title=f"{tipo} - Semana {period} (Acumulativo)",
                country=f"País {index + 1}",
                type=tipo,
                period=period,
            )
            for index, url in enumerate(urls)
        ]

    async def convert_urls_to_media(self, urls: list[str]) -> list[MediaPayload]:
        """Download every image; failed downloads are skipped."""
        results = await asyncio.gather(*(self._download(url, i, len(urls)) for i, url in enumerate(urls)))
        media = [item for item in results if item is not None]
        logger.info(f"{len(media)}/{len(urls)} images converted")
        return media

    async def _download(self, url: str, index: int, total: int) -> MediaPayload | None:
        try:
            response = await self._get_http().get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Image {index + 1}/{total} download failed ({url}): {e}")
            return None

        mimetype = response.headers.get("content-type", "image/png").split(";")[0].strip()
        return MediaPayload(
            mimetype=mimetype,
            data=base64.b64encode(response.content).decode("ascii"),
            filename=url.rsplit("/", 1)[-1] or None,
        )

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
