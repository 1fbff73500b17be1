"""
Monitoring utilities for pypurple.
"""

from .metrics import (
    start_metrics_server,
    track_http_latency,
    track_http_request,
    track_http_retry,
    track_token_exchange
)

__all__ = [
    "start_metrics_server",
    "track_http_latency",
    "track_http_request",
    "track_http_retry",
    "track_token_exchange"
]
