"""
pypurple Configuration Module

Provides the immutable client config and its file/environment loaders.
"""

from .config_loader import ConfigLoader, ENV_VARS
from .settings import ClientConfig

__all__ = ['ClientConfig', 'ConfigLoader', 'ENV_VARS']
