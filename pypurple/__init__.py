"""
pypurple: client core for the BSN.cloud device-management platform

Authentication & session management plus a resilient HTTP transport shared
by every resource operation.
"""

from .__version__ import __version__
from .client import PurpleClient
from .communication import HTTPTransport, RequestSpec, UnwrapStrategy
from .config import ClientConfig
from .core import (
    RequestContext,
    PurpleError, APIError, AuthenticationError, NetworkError,
    ConfigurationError, ValidationError, OperationCancelledError,
    is_api_error, is_authentication_error, is_network_error,
    is_configuration_error, is_validation_error, is_cancelled_error,
    is_retryable_error,
    Network, NetworkContext, Token
)
from .security import AuthManager
from .services import BaseService, SessionProvider

__all__ = [
    '__version__',
    'PurpleClient', 'ClientConfig', 'AuthManager', 'HTTPTransport',
    'RequestSpec', 'UnwrapStrategy', 'RequestContext',
    'BaseService', 'SessionProvider',
    'PurpleError', 'APIError', 'AuthenticationError', 'NetworkError',
    'ConfigurationError', 'ValidationError', 'OperationCancelledError',
    'is_api_error', 'is_authentication_error', 'is_network_error',
    'is_configuration_error', 'is_validation_error', 'is_cancelled_error',
    'is_retryable_error',
    'Network', 'NetworkContext', 'Token'
]
