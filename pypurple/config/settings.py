"""
Client Configuration

Immutable settings for one client instance: credentials, endpoints,
per-attempt timeout, retry policy, and the optional default network.

Precedence, lowest to highest:
    defaults -> YAML config file -> environment variables -> explicit options
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from pypurple.__version__ import __version__
from pypurple.core.errors import ConfigurationError
from pypurple.core.models import Credentials

from .config_loader import ConfigLoader


DEFAULT_API_VERSION = "2022/06/REST"
DEFAULT_BSN_BASE_URL = "https://api.bsn.cloud"
DEFAULT_RDWS_BASE_URL = "https://ws.bsn.cloud/rest/v1"
DEFAULT_TOKEN_ENDPOINT = "https://auth.bsn.cloud/realms/bsncloud/protocol/openid-connect/token"
OIDC_TOKEN_PATH = "/protocol/openid-connect/token"


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings shared by the transport and the auth manager.

    Never mutated after construction; use with_overrides() to derive a new
    instance.
    """
    client_id: str = ""
    client_secret: str = field(default="", repr=False)

    network_name: str = ""
    api_version: str = DEFAULT_API_VERSION

    bsn_base_url: str = DEFAULT_BSN_BASE_URL
    rdws_base_url: str = DEFAULT_RDWS_BASE_URL
    token_endpoint: str = DEFAULT_TOKEN_ENDPOINT

    timeout: float = 30.0  # seconds, per attempt
    retry_count: int = 3
    retry_wait: float = 1.0
    retry_max_wait: float = 10.0
    token_safety_margin: float = 30.0
    debug: bool = False

    device_serial: str = ""
    user_agent: str = f"pypurple-sdk/{__version__}"

    def __post_init__(self):
        self.validate()

    @classmethod
    def load(
        cls,
        config_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        **options: Any
    ) -> "ClientConfig":
        """
        Build a validated config from all sources.

        Args:
            config_file: Optional YAML file with ClientConfig field names as keys
            environ: Environment mapping (default: os.environ)
            **options: Explicit settings; None values count as "not given".
                       Also accepts oidc_url, which derives token_endpoint.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        values: Dict[str, Any] = {}

        if config_file:
            values.update(_known_fields(ConfigLoader.load(config_file), "config_file"))

        values.update(ConfigLoader.from_env(environ))

        explicit = {k: v for k, v in options.items() if v is not None}
        oidc_url = explicit.pop("oidc_url", None)
        _reject_empty_endpoints(explicit)
        values.update(_known_fields(explicit, "options"))

        if oidc_url is not None:
            if not oidc_url:
                raise ConfigurationError("oidc_url", "OIDC URL cannot be empty")
            values["token_endpoint"] = oidc_url.rstrip("/") + OIDC_TOKEN_PATH

        return cls(**values)

    def validate(self):
        """
        Check required fields and value ranges.

        Raises:
            ConfigurationError: Describing the first invalid field
        """
        # Credentials enforce their own non-empty rule
        Credentials(self.client_id, self.client_secret)

        for name in ("bsn_base_url", "rdws_base_url", "token_endpoint"):
            if not getattr(self, name):
                raise ConfigurationError(name, "field is required")

        if not self.api_version:
            raise ConfigurationError("api_version", "field is required")

        for name in ("timeout", "retry_wait", "retry_max_wait", "token_safety_margin"):
            if not _is_number(getattr(self, name)):
                raise ConfigurationError(name, f"must be a number of seconds, got {getattr(self, name)!r}")

        if isinstance(self.retry_count, bool) or not isinstance(self.retry_count, int):
            raise ConfigurationError("retry_count", f"must be an integer, got {self.retry_count!r}")

        if not isinstance(self.debug, bool):
            raise ConfigurationError("debug", f"must be true or false, got {self.debug!r}")

        if self.timeout <= 0:
            raise ConfigurationError("timeout", "must be positive")

        if self.retry_count < 0:
            raise ConfigurationError("retry_count", "cannot be negative")

        if self.retry_wait < 0 or self.retry_max_wait < self.retry_wait:
            raise ConfigurationError(
                "retry_wait", "must be non-negative and not exceed retry_max_wait"
            )

        if self.token_safety_margin < 0:
            raise ConfigurationError("token_safety_margin", "cannot be negative")

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.client_id, self.client_secret)

    def with_overrides(self, **changes: Any) -> "ClientConfig":
        """Return a new validated config with the given fields replaced"""
        _reject_empty_endpoints(changes)
        return dataclasses.replace(self, **_known_fields(changes, "options"))

    def bsn_url(self, path: str) -> str:
        """Absolute BSN.cloud REST URL for a path like 'Self/Networks'"""
        return f"{self.bsn_base_url.rstrip('/')}/{self.api_version}/{path.lstrip('/')}"

    def rdws_url(self, path: str) -> str:
        """Absolute remote-diagnostics URL for a path like 'info/'"""
        return f"{self.rdws_base_url.rstrip('/')}/{path.lstrip('/')}"


_FIELD_NAMES = {f.name for f in dataclasses.fields(ClientConfig)}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _known_fields(values: Dict[str, Any], source: str) -> Dict[str, Any]:
    unknown = sorted(set(values) - _FIELD_NAMES)
    if unknown:
        raise ConfigurationError(source, f"unknown settings: {unknown}")
    return dict(values)


def _reject_empty_endpoints(values: Dict[str, Any]):
    for name in ("bsn_base_url", "rdws_base_url", "token_endpoint"):
        if name in values and not values[name]:
            raise ConfigurationError(name, "endpoint cannot be empty")
