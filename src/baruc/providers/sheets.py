"""
Baruc Providers - Google Sheets.

Reads the operations spreadsheet through the Sheets v4 values API (API key)
and shapes it for the three workflows:

- get_data_as_csv: cumulative order/expense columns for the chart renderer
- get_mltv_data_for_analysis: bounded text blob of the MLTV tabs for Gemini
- get_op_zones_analysis: WoW aggregates per country and zone class

The shaping functions are pure so they can be tested without the API.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date, timedelta
from typing import Any
from urllib.parse import quote

import httpx
import pandas as pd

from baruc.config import Settings
from baruc.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = (("COUNTRY", 0), ("SQUAD", 1), ("ORDER_HOUR", 2))
ORDERS_YESTERDAY_COLUMN = "ORDERS_Y"
DAY_PATTERNS = (
    "TODAY", "HOY", "ORDERS_TODAY", "GASTOS_TODAY",
    "YESTERDAY", "AYER", "ORDERS_YESTERDAY", "GASTOS_YESTERDAY",
)

MLTV_MAX_ROWS_PER_SHEET = 1000
MLTV_MAX_CHARS = 8000
MLTV_MAX_COLUMNS = 8
DATE_PATTERN = re.compile(r"\d{1,2}/\d{1,2}")

OP_ZONES_ORDERS_RANGE = "'OP ZONES ORDERS'!A1:Z16000"
OP_ZONES_BASES_RANGE = "'OP ZONES BASES'!A1:Z16000"
# Positional layout of OP ZONES rows: week, type, country, city, zone name, zone class, ...
OP_ZONES_WEEK, OP_ZONES_COUNTRY, OP_ZONES_CITY, OP_ZONES_CLASS = 0, 2, 3, 5
OP_ZONES_ORDERS_VALUE = 8  # TOTAL_ORDERS
OP_ZONES_BASES_VALUE = 7  # ACTIVE_USERS


# =============================================================================
# Pure shaping
# =============================================================================


def week_patterns(period: int) -> list[str]:
    patterns: list[str] = []
    for week in range(1, period + 1):
        patterns.extend([
            f"WEEK_{week}", f"W_{week}", f"W{week}",
            f"SEMANA_{week}", f"S_{week}", f"S{week}",
            f"ORDERS_W{week}", f"GASTOS_W{week}",
            f"ORDERS_WEEK_{week}", f"GASTOS_WEEK_{week}",
            f"ORDERS_LW{week}", f"GASTOS_LW{week}",
        ])
    return patterns


def select_cumulative_columns(headers: list[str], period: int, include_yesterday: bool = True) -> list[int]:
    """
    Column indices for a cumulative window of ``period`` weeks.

    Order: COUNTRY, SQUAD, ORDER_HOUR, ORDERS_Y (if requested), then today,
    yesterday and the week columns up to ``period``. No index appears twice.
    """
    upper = [str(h).upper() for h in headers]
    selected: list[int] = []

    def find(pattern: str) -> int:
        return next((i for i, h in enumerate(upper) if pattern in h), -1)

    for name, expected in REQUIRED_COLUMNS:
        if expected < len(upper) and name in upper[expected]:
            selected.append(expected)
            continue
        found = find(name)
        if found == -1:
            raise ExternalServiceException("Google Sheets", f"Required column {name} not found")
        selected.append(found)

    if include_yesterday:
        found = find(ORDERS_YESTERDAY_COLUMN)
        if found == -1:
            logger.warning("ORDERS_Y column not found")
        elif found not in selected:
            selected.append(found)

    for pattern in (*DAY_PATTERNS, *week_patterns(period)):
        found = find(pattern.upper())
        if found != -1 and found not in selected:
            selected.append(found)

    if len(selected) < 4:
        raise ExternalServiceException("Google Sheets", "Not enough data columns to build charts")
    return selected


def rows_to_csv(rows: list[list[Any]], period: int, include_yesterday: bool = True) -> str:
    if not rows:
        raise ExternalServiceException("Google Sheets", "Sheet is empty")

    headers = [str(h) for h in rows[0]]
    indices = select_cumulative_columns(headers, period, include_yesterday)

    data = [[row[i] if i < len(row) else "" for i in indices] for row in rows[1:]]
    frame = pd.DataFrame(data, columns=[headers[i] for i in indices])
    logger.info(f"CSV built with {len(frame)} rows and columns {list(frame.columns)}")
    return frame.to_csv(index=False, lineterminator="\n")


def js_weekday(day: date) -> int:
    """Sunday=0 ... Saturday=6."""
    return (day.weekday() + 1) % 7


def closed_week_bounds(today: date) -> tuple[date, date, date]:
    """(previous week start, last closed week start, last closed week end). Weeks run Monday-Sunday."""
    last_week_end = today - timedelta(days=js_weekday(today))
    last_week_start = last_week_end - timedelta(days=6)
    prev_week_start = last_week_start - timedelta(days=7)
    return prev_week_start, last_week_start, last_week_end


def format_mltv_text(sheets: list[tuple[str, list[list[Any]]]], today: date) -> str:
    """Bounded text rendering of the MLTV tabs for the analysis prompt."""
    last_week_start = today - timedelta(days=js_weekday(today) - 1 + 7)
    text = "DATOS DE MULTIVERTICALIDAD (MLTV) PARA ANÁLISIS:\n\n"
    text += f"BUSCAR: Datos de semana {last_week_start.strftime('%d/%m/%Y')}\n\n"

    for name, data in sheets:
        if len(text) > MLTV_MAX_CHARS:
            break
        text += f"=== HOJA: {name} ===\n"

        for index, row in enumerate(data[:MLTV_MAX_ROWS_PER_SHEET]):
            if len(text) > MLTV_MAX_CHARS:
                break
            cells = [str(cell) if cell is not None else "" for cell in row[:MLTV_MAX_COLUMNS]]
            if index == 0:
                text += f"COLUMNAS: {' | '.join(cells)}\n" + "-" * 40 + "\n"
                continue
            if not any(cell.strip() for cell in cells):
                continue
            has_date = any(_looks_like_date(cell) for cell in cells)
            text += f"{'[FECHA] ' if has_date else ''}{' | '.join(cells)}\n"

        if len(data) > MLTV_MAX_ROWS_PER_SHEET:
            text += f"\n[Procesadas {MLTV_MAX_ROWS_PER_SHEET} de {len(data)} filas]\n"
        text += "\n"

    if len(text) > MLTV_MAX_CHARS:
        text = text[:MLTV_MAX_CHARS] + "\n\n[DATOS TRUNCADOS]"
    return text


def _looks_like_date(cell: str) -> bool:
    return DATE_PATTERN.search(cell) is not None


def _op_zones_frame(rows: list[list[Any]], value_index: int) -> pd.DataFrame:
    width = value_index + 1
    padded = [list(row[:width]) + [""] * (width - len(row)) for row in rows[1:] if row]
    if not padded:
        return pd.DataFrame(columns=["week", "country", "city", "zone", "value"])

    raw = pd.DataFrame(padded)
    frame = pd.DataFrame({
        "week": pd.to_datetime(raw[OP_ZONES_WEEK], errors="coerce", format="mixed"),
        "country": raw[OP_ZONES_COUNTRY].astype(str).str.strip(),
        "city": raw[OP_ZONES_CITY].astype(str).str.strip(),
        "zone": raw[OP_ZONES_CLASS].astype(str).str.strip(),
        "value": pd.to_numeric(raw[value_index], errors="coerce").fillna(0).astype(int),
    })
    return frame[(frame["country"] != "") & (frame["zone"] != "") & frame["week"].notna()]


def _label_periods(frame: pd.DataFrame, today: date) -> pd.DataFrame:
    prev_start, last_start, _ = closed_week_bounds(today)
    current = frame["week"] >= pd.Timestamp(last_start)
    previous = (frame["week"] >= pd.Timestamp(prev_start)) & ~current
    frame = frame.assign(period=None)
    frame.loc[current, "period"] = "current"
    frame.loc[previous, "period"] = "prev"
    return frame.dropna(subset=["period"])


def _wow(current: int, prev: int) -> float:
    return ((current - prev) / prev) * 100 if prev > 0 else 0.0


def compute_op_zones_analysis(
    orders_rows: list[list[Any]],
    bases_rows: list[list[Any]],
    today: date,
) -> dict[str, dict[str, Any]]:
    """
    Aggregate OP ZONES orders and active users per country and zone class.

    Returns ``{country: {"zone<class>": {"orders": {current, prev, wow},
    "bases": {current, prev, wow}, "topCities": [{city, volume}]}}}`` comparing
    the last closed week against the one before.
    """
    orders = _label_periods(_op_zones_frame(orders_rows, OP_ZONES_ORDERS_VALUE), today)
    bases = _label_periods(_op_zones_frame(bases_rows, OP_ZONES_BASES_VALUE), today)

    analysis: dict[str, dict[str, Any]] = {}

    def bucket(country: str, zone: str) -> dict[str, Any]:
        zones = analysis.setdefault(country, {})
        return zones.setdefault(f"zone{zone}", {
            "orders": {"current": 0, "prev": 0},
            "bases": {"current": 0, "prev": 0},
            "topCities": [],
        })

    for kind, frame in (("orders", orders), ("bases", bases)):
        if frame.empty:
            continue
        totals = frame.groupby(["country", "zone", "period"])["value"].sum()
        for (country, zone, period), value in totals.items():
            bucket(country, zone)[kind][period] = int(value)

    if not orders.empty:
        current_orders = orders[orders["period"] == "current"]
        by_city = current_orders.groupby(["country", "zone", "city"])["value"].sum().reset_index()
        for (country, zone), group in by_city.groupby(["country", "zone"]):
            top = group.sort_values("value", ascending=False, kind="stable").head(3)
            bucket(country, zone)["topCities"] = [
                {"city": row.city, "volume": int(row.value)} for row in top.itertuples()
            ]

    for zones in analysis.values():
        for data in zones.values():
            for kind in ("orders", "bases"):
                data[kind]["wow"] = _wow(data[kind]["current"], data[kind]["prev"])

    return analysis


# =============================================================================
# Provider
# =============================================================================


class GoogleSheetsProvider:
    """Spreadsheet data source (Sheets v4 REST with API key)."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.spreadsheet_id = settings.sheets.spreadsheet_id
        self.api_key = settings.sheets.api_key
        self.base_url = settings.sheets.base_url.rstrip("/")
        self.timeout_seconds = settings.sheets.timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._client

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.spreadsheet_id:
            raise ExternalServiceException("Google Sheets", "SHEETS_SPREADSHEET_ID is not configured")

        query = {"key": self.api_key, **(params or {})}
        url = f"{self.base_url}/{self.spreadsheet_id}{path}"
        try:
            response = await self._get_client().get(url, params=query)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Sheets API {e.response.status_code}: {e.response.text[:200]}")
            raise ExternalServiceException("Google Sheets", f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Sheets API call failed: {e}")
            raise ExternalServiceException("Google Sheets", str(e))

    async def get_values(self, range_: str) -> list[list[Any]]:
        data = await self._get(f"/values/{quote(range_, safe='')}")
        return data.get("values") or []

    async def list_sheet_titles(self) -> list[str]:
        data = await self._get("", params={"fields": "sheets.properties.title"})
        return [s.get("properties", {}).get("title", "") for s in data.get("sheets", [])]

    async def get_data_as_csv(self, period: int = 4, include_yesterday: bool = True) -> str:
        logger.info(f"Fetching CSV data: period={period} weeks (cumulative), include_yesterday={include_yesterday}")
        rows = await self.get_values("A:ZZ")
        return rows_to_csv(rows, period, include_yesterday)

    async def get_mltv_data_for_analysis(self, today: date | None = None) -> str:
        titles = [t for t in await self.list_sheet_titles() if "mltv" in t.lower()]
        if not titles:
            raise ExternalServiceException("Google Sheets", "No MLTV sheets found")
        logger.info(f"Found {len(titles)} MLTV sheets: {titles}")

        sheets: list[tuple[str, list[list[Any]]]] = []
        for title in titles:
            try:
                values = await self.get_values(f"'{title}'!A:Z")
            except ExternalServiceException as e:
                logger.error(f"Skipping MLTV sheet {title}: {e.message}")
                continue
            if values:
                sheets.append((title, values))

        text = format_mltv_text(sheets, today or date.today())
        logger.info(f"MLTV data prepared: {len(text)} chars")
        return text

    async def get_op_zones_analysis(self, today: date | None = None) -> dict[str, dict[str, Any]]:
        orders_rows, bases_rows = await asyncio.gather(
            self.get_values(OP_ZONES_ORDERS_RANGE),
            self.get_values(OP_ZONES_BASES_RANGE),
        )
        return compute_op_zones_analysis(orders_rows, bases_rows, today or date.today())

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
