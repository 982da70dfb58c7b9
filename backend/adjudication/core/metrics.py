"""
Prometheus metrics configuration
"""
from prometheus_client import (CONTENT_TYPE_LATEST, Counter, Gauge, Histogram,
                               Info, generate_latest)
from prometheus_client.registry import REGISTRY

from adjudication import __version__
from adjudication.core.config import get_settings

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

# ============================================================================
# Decision Metrics
# ============================================================================

decision_submissions_total = Counter(
    'decision_submissions_total',
    'Total number of decision submissions',
    ['outcome']  # created, updated, validation_error, backend_error
)

backend_call_duration_seconds = Histogram(
    'backend_call_duration_seconds',
    'Decision store call duration in seconds',
    ['operation'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
)

backend_errors_total = Counter(
    'backend_errors_total',
    'Total number of decision store failures',
    ['operation']
)

# ============================================================================
# Change Feed Metrics
# ============================================================================

change_events_published_total = Counter(
    'change_events_published_total',
    'Total number of decision change events published',
    ['event_type']
)

change_events_applied_total = Counter(
    'change_events_applied_total',
    'Total number of change events merged into live views',
    ['result']  # inserted, replaced, stale, ignored
)

change_feed_subscriptions = Gauge(
    'change_feed_subscriptions',
    'Number of open change feed subscriptions'
)

app_info = Info(
    'app',
    'Application information'
)

_settings = get_settings()
app_info.info({
    "app_name": _settings.app_name,
    "app_env": _settings.app_env,
    "matrix_id": _settings.matrix_id,
    "version": __version__,
})

# ============================================================================
# Helper Functions
# ============================================================================

def get_metrics():
    """
    Get Prometheus metrics in text format

    Returns:
        bytes: Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type():
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST
