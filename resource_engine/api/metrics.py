"""Prometheus metrics for the resource engine API"""

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    'resource_engine_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

REQUEST_DURATION = Histogram(
    'resource_engine_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

RECOMMENDATION_COUNT = Counter(
    'resource_engine_recommendations_total',
    'Recommendations served',
    ['strategy', 'urgency']
)

RECOMMENDATION_DURATION = Histogram(
    'resource_engine_recommendation_duration_seconds',
    'Recommendation generation duration in seconds'
)

EMPTY_RECOMMENDATION_COUNT = Counter(
    'resource_engine_empty_recommendations_total',
    'Recommendation requests that produced no candidates'
)

SEARCH_DURATION = Histogram(
    'resource_engine_search_duration_seconds',
    'Directory search duration in seconds'
)

INTERACTION_COUNT = Counter(
    'resource_engine_interactions_total',
    'Interactions tracked',
    ['event_type', 'recorded']
)

ACTIVE_RESOURCES = Gauge(
    'resource_engine_active_resources',
    'Active resources in the catalog'
)

ERROR_COUNT = Counter(
    'resource_engine_errors_total',
    'Total errors',
    ['error_type']
)
