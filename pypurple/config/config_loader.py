"""
Configuration Loader

Utilities for reading client settings from YAML files and environment
variables. Values come back as plain dicts keyed by ClientConfig field name;
ClientConfig decides precedence and validation.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from pypurple.core.errors import ConfigurationError


# Environment variable -> ClientConfig field
ENV_VARS = {
    "BS_CLIENT_ID": "client_id",
    "BS_SECRET": "client_secret",
    "BS_NETWORK": "network_name",
    "BS_API_BASE_URL": "bsn_base_url",
    "BS_RDWS_BASE_URL": "rdws_base_url",
    "BS_TOKEN_ENDPOINT": "token_endpoint",
    "BS_TIMEOUT": "timeout",
    "BS_RETRY_COUNT": "retry_count",
    "BS_DEBUG": "debug",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigLoader:
    """
    Load client settings from YAML files and the environment.
    """

    @staticmethod
    def load(config_path: str) -> Dict[str, Any]:
        """
        Load a YAML configuration file.

        Args:
            config_path: Path to YAML file

        Returns:
            Configuration dictionary

        Raises:
            ConfigurationError: If the file is missing, unparseable, or not
                                a mapping
        """
        path = Path(config_path)

        if not path.exists():
            raise ConfigurationError("config_file", f"file not found: {config_path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError("config_file", f"invalid YAML in {config_path}: {e}") from e

        if config is None:
            config = {}

        if not isinstance(config, dict):
            raise ConfigurationError("config_file", f"{config_path} must contain a mapping")

        return config

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """
        Collect settings from environment variables.

        Empty variables are ignored. Numeric and boolean variables are
        converted here so a bad value fails before any client is built.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            Dict of ClientConfig field -> value for each variable that is set
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for var, key in ENV_VARS.items():
            raw = environ.get(var, "")
            if not raw:
                continue

            if key == "timeout":
                values[key] = _parse_float(var, raw)
            elif key == "retry_count":
                values[key] = _parse_int(var, raw)
            elif key == "debug":
                values[key] = _parse_bool(var, raw)
            else:
                values[key] = raw

        return values


def _parse_float(var: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(var, f"expected a number of seconds, got {raw!r}")


def _parse_int(var: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(var, f"expected an integer, got {raw!r}")


def _parse_bool(var: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(var, f"expected a boolean, got {raw!r}")
