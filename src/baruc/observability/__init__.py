"""
Baruc Observability Module.

Provides in-process metrics collection for stages, errors, and message counters.
"""

from baruc.observability.metrics import MetricsStore, get_metrics_store

__all__ = ["MetricsStore", "get_metrics_store"]
