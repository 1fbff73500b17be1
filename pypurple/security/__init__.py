"""
pypurple Security Module

Provides the authentication & session manager and its single-flight refresh.
"""

from .auth import AuthManager
from .single_flight import SingleFlight

__all__ = ['AuthManager', 'SingleFlight']
