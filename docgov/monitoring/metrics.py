"""
Prometheus metrics for the Document Governance Portal
"""

import time

from fastapi import Request
from prometheus_client import CollectorRegistry, Counter, Histogram
from prometheus_client.exposition import generate_latest

# Create a custom registry
metrics_registry = CollectorRegistry()

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=metrics_registry
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=(.005, .01, .025, .05, .075, .1, .25, .5, .75, 1.0, 2.5, 5.0, 7.5, 10.0),
    registry=metrics_registry
)

# Magic link metrics
magic_links_issued_total = Counter(
    "magic_links_issued_total",
    "Total magic links issued",
    registry=metrics_registry
)

magic_link_redemptions_total = Counter(
    "magic_link_redemptions_total",
    "Magic link redemption attempts",
    ["outcome", "reason"],
    registry=metrics_registry
)

magic_links_revoked_total = Counter(
    "magic_links_revoked_total",
    "Total magic links revoked",
    registry=metrics_registry
)

# Permission metrics
permission_changes_total = Counter(
    "permission_changes_total",
    "Tenant document permission changes",
    ["action"],
    registry=metrics_registry
)

# Error metrics
errors_total = Counter(
    "errors_total",
    "Total errors",
    ["error_type", "endpoint"],
    registry=metrics_registry
)


async def track_request(request: Request, call_next):
    """HTTP middleware recording request count and latency per route"""
    start_time = time.time()
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    status = "500"
    try:
        response = await call_next(request)
        status = str(response.status_code)
        return response
    except Exception as e:
        errors_total.labels(error_type=type(e).__name__, endpoint=endpoint).inc()
        raise
    finally:
        route = request.scope.get("route")
        endpoint = getattr(route, "path", endpoint)
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status=status
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(time.time() - start_time)


def get_metrics() -> bytes:
    """Generate Prometheus metrics exposition format"""
    return generate_latest(metrics_registry)
