"""
Prometheus metrics

Exposes:
  - http_requests_total                 (counter)
  - http_request_duration_seconds       (histogram)
  - http_requests_in_progress           (gauge)
  - tenant_resolutions_total            (counter, by outcome)
  - domain_verifications_total          (counter, by result)
  - search_requests_total               (counter, by result)
  - search_duration_seconds             (histogram)
  - app_info                            (info)
"""

from prometheus_client import Counter, Gauge, Histogram, Info

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of in-progress requests",
    ["method"],
)

TENANT_RESOLUTIONS = Counter(
    "tenant_resolutions_total",
    "Host header resolutions by outcome",
    ["outcome"],
)
DOMAIN_VERIFICATIONS = Counter(
    "domain_verifications_total",
    "Custom domain verification attempts",
    ["result"],
)
SEARCH_REQUESTS = Counter(
    "search_requests_total",
    "Post searches by result",
    ["result"],
)
SEARCH_DURATION = Histogram(
    "search_duration_seconds",
    "Post search latency in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5),
)

APP_INFO = Info("app", "Application metadata")


def set_app_info(version: str = "0.1.0", env: str = "development") -> None:
    """Set application info metric."""
    APP_INFO.info({"version": version, "environment": env})
