"""
Baruc Metrics Endpoint.

Exposes observability metrics for monitoring and debugging.
"""

from fastapi import APIRouter

from baruc.observability import get_metrics_store

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
def get_metrics() -> dict:
    """
    Get current metrics summary.

    Example response:
    ```json
    {
      "uptime_seconds": 3600.5,
      "collected_at": "2025-06-20T19:00:00+00:00",
      "stages": {
        "classify": {"call_count": 42, "p50_ms": 850.1, "errors": {"UNPARSEABLE": 1}},
        "workflow:graficas": {"call_count": 3, "p50_ms": 41200.0, "errors": {}}
      },
      "global_errors": {"UNPARSEABLE": 1},
      "counters": {"messages_received": 120, "messages_ignored": 80, "replies_sent": 51}
    }
    ```
    """
    return get_metrics_store().get_summary()
