"""
pypurple Core Module

Error taxonomy, session models, and the request context.
"""

from .context import RequestContext
from .errors import (
    PurpleError, APIError, AuthenticationError, NetworkError,
    ConfigurationError, ValidationError, OperationCancelledError,
    is_api_error, is_authentication_error, is_network_error,
    is_configuration_error, is_validation_error, is_cancelled_error,
    is_retryable_error
)
from .models import Credentials, Token, Network, NetworkContext

__all__ = [
    'RequestContext',
    'PurpleError', 'APIError', 'AuthenticationError', 'NetworkError',
    'ConfigurationError', 'ValidationError', 'OperationCancelledError',
    'is_api_error', 'is_authentication_error', 'is_network_error',
    'is_configuration_error', 'is_validation_error', 'is_cancelled_error',
    'is_retryable_error',
    'Credentials', 'Token', 'Network', 'NetworkContext'
]
