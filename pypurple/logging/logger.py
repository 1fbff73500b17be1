"""
pypurple Structured Logging

JSON-formatted log records for library components, plus the redaction
applied to anything that might carry a credential (bearer tokens, basic
auth, client secrets).
"""

import logging
import logging.config
import json
import os
import re
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

import yaml


REDACTED = "***"

SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "cookie", "set-cookie"}

_CREDENTIAL_PATTERNS = [
    (re.compile(r"\b(Bearer|Basic)\s+[A-Za-z0-9\-._~+/]+=*"), r"\1 " + REDACTED),
    # JSON bodies and Python dict reprs of form data
    (re.compile(r"""(?i)(["'](?:access_token|refresh_token|client_secret|id_token)["']\s*:\s*["'])[^"']*(["'])"""),
     r"\1" + REDACTED + r"\2"),
    (re.compile(r"(?i)\b(client_secret|access_token)=[^&\s]+"), r"\1=" + REDACTED),
]


def redact(text: str) -> str:
    """Mask credentials embedded in free text"""
    for pattern, replacement in _CREDENTIAL_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def redact_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Copy headers with credential values masked.

    The auth scheme is kept so logs still show which kind was sent.
    """
    safe: Dict[str, str] = {}
    for name, value in (headers or {}).items():
        if name.lower() in SENSITIVE_HEADERS:
            scheme = str(value).split(" ", 1)[0] if " " in str(value) else ""
            safe[name] = f"{scheme} {REDACTED}".strip()
        else:
            safe[name] = value
    return safe


class RedactingFilter(logging.Filter):
    """Scrub credentials from every record passing through a handler or logger"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = redact(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


class StructuredFormatter(logging.Formatter):
    """Custom formatter that outputs JSON-structured log entries"""

    def __init__(self, component: str = "pypurple"):
        super().__init__()
        self.component = component

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": self.component,
            "logger": record.name,
            "message": redact(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_data["exception"] = redact(self.formatException(record.exc_info))

        if hasattr(record, 'extra_fields'):
            log_data.update({
                k: redact(v) if isinstance(v, str) else v
                for k, v in record.extra_fields.items()
            })

        return json.dumps(log_data, default=str)


def get_logger(name: str, component: str = "pypurple", level: int = logging.INFO) -> logging.Logger:
    """
    Get a structured logger for a pypurple component.

    Args:
        name: Logger name (typically module name)
        component: Component label stamped on every entry
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance

    Example:
        >>> logger = get_logger("pypurple", component="device-sync")
        >>> logger.info("Network bound", extra={'extra_fields': {'network': 'Production'}})
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        logger.setLevel(level)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(StructuredFormatter(component))
        console_handler.addFilter(RedactingFilter())

        logger.addHandler(console_handler)
        logger.propagate = False

    return logger


def configure_logging(config_path: Optional[str] = None, default_level: int = logging.INFO) -> bool:
    """
    Configure logging from a YAML file. Falls back to basicConfig on failure.

    Args:
        config_path: Path to YAML logging config
        default_level: Default log level for fallback config

    Returns:
        True if YAML config loaded, False otherwise
    """
    if config_path and os.path.isfile(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as handle:
                config = yaml.safe_load(handle)

            if not config:
                raise ValueError("Logging config is empty")

            for handler in config.get("handlers", {}).values():
                filename = handler.get("filename")
                if filename:
                    os.makedirs(os.path.dirname(filename) or ".", exist_ok=True)

            logging.config.dictConfig(config)
            return True
        except (OSError, ValueError, TypeError, AttributeError, yaml.YAMLError) as e:
            logging.basicConfig(level=default_level)
            logging.getLogger(__name__).warning(f"Falling back to basic logging: {e}")
            return False

    logging.basicConfig(level=default_level)
    return False
