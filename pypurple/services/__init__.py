"""
pypurple Services Module

Base class and capability interface for resource facades.
"""

from .base import BaseService, SessionProvider

__all__ = ['BaseService', 'SessionProvider']
