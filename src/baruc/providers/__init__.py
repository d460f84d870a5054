"""
Baruc Providers - External data sources and storage.
"""

from baruc.providers.chart_renderer import ChartRendererClient
from baruc.providers.sheets import GoogleSheetsProvider
from baruc.providers.storage import CloudinaryStorage

__all__ = ["ChartRendererClient", "CloudinaryStorage", "GoogleSheetsProvider"]
