"""
Baruc Workflows - Charts, MLTV and OP ZONES reports.
"""

from baruc.workflows.charts import ChartDescriptor, ChartsService
from baruc.workflows.mltv import MLTVService
from baruc.workflows.op_zones import OpZonesService

__all__ = ["ChartDescriptor", "ChartsService", "MLTVService", "OpZonesService"]
