"""
pypurple Communication Module

Provides the HTTP transport, request specs, and response envelopes.
"""

from .envelope import UnwrapStrategy, unwrap
from .http_client import HTTPTransport
from .request_spec import RequestSpec, IDEMPOTENT_METHODS

__all__ = ['HTTPTransport', 'RequestSpec', 'IDEMPOTENT_METHODS', 'UnwrapStrategy', 'unwrap']
