"""
Prometheus metrics for pypurple.
"""

from prometheus_client import Counter, Histogram, start_http_server

_metrics_started = False

http_requests_total = Counter(
    "pypurple_http_requests_total",
    "Total HTTP attempts made by the client",
    ["method", "host", "status"]
)

http_request_latency_seconds = Histogram(
    "pypurple_http_request_latency_seconds",
    "HTTP attempt latency in seconds",
    ["method", "host"]
)

http_retries_total = Counter(
    "pypurple_http_retries_total",
    "HTTP attempts repeated after a retryable failure",
    ["method", "host", "reason"]
)

token_exchanges_total = Counter(
    "pypurple_token_exchanges_total",
    "Client-credentials token exchanges by outcome",
    ["outcome"]
)


def start_metrics_server(port: int = 9090, addr: str = "0.0.0.0"):
    """Start Prometheus metrics server if not already running."""
    global _metrics_started

    if _metrics_started:
        return

    start_http_server(port, addr=addr)
    _metrics_started = True


def track_http_request(method: str, host: str, status: str):
    """Track one HTTP attempt by method, host, and status (or error kind)."""
    http_requests_total.labels(method=method, host=host, status=status).inc()


def track_http_latency(method: str, host: str, duration_seconds: float):
    """Track HTTP attempt latency."""
    http_request_latency_seconds.labels(method=method, host=host).observe(duration_seconds)


def track_http_retry(method: str, host: str, reason: str):
    """Track a retry and the classification that triggered it."""
    http_retries_total.labels(method=method, host=host, reason=reason).inc()


def track_token_exchange(outcome: str):
    """Track a token exchange: success, auth_failure, or error."""
    token_exchanges_total.labels(outcome=outcome).inc()
