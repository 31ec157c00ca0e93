"""
Monitoring module for application metrics
"""

from docgov.monitoring.metrics import get_metrics, metrics_registry, track_request

__all__ = [
    "get_metrics",
    "metrics_registry",
    "track_request",
]
