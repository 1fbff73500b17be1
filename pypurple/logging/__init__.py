"""
pypurple Logging Module

Provides structured JSON logging and credential redaction.
"""

from .logger import (
    REDACTED, configure_logging, get_logger, StructuredFormatter,
    RedactingFilter, redact, redact_headers
)

__all__ = [
    'REDACTED', 'configure_logging', 'get_logger', 'StructuredFormatter',
    'RedactingFilter', 'redact', 'redact_headers'
]
