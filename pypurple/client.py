"""
pypurple Client

Top-level entry point. Wires configuration, the HTTP transport and the
auth manager together and exposes the session operations. Resource facades
are constructed from the same three pieces (see services.BaseService).

Basic usage:

    with PurpleClient(client_id="...", client_secret="...", network_name="Production") as client:
        client.authenticate()
        for network in client.get_networks():
            print(network.name)

By default credentials come from the environment:
    BS_CLIENT_ID  - BSN.cloud API client ID
    BS_SECRET     - BSN.cloud API client secret
    BS_NETWORK    - default network name (optional)
"""

import logging
from typing import Any, Callable, List, Mapping, Optional

import requests

from pypurple.communication.http_client import HTTPTransport
from pypurple.config.settings import ClientConfig
from pypurple.core.context import RequestContext
from pypurple.core.errors import AuthenticationError
from pypurple.core.models import Network, NetworkContext, Token
from pypurple.security.auth import AuthManager


class PurpleClient:
    """
    Session-level client for BSN.cloud.

    Thread-safe: one instance can serve many threads; they share a single
    token and network context.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        config_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        transport: Optional[HTTPTransport] = None,
        session: Optional[requests.Session] = None,
        **options: Any
    ):
        """
        Initialize the client.

        Args:
            config: Ready-made config; when given, config_file/environ/options
                    are not consulted
            config_file: Optional YAML config file
            environ: Environment mapping (default: os.environ)
            transport: Pre-built transport to share; session is ignored when given
            session: Optional requests.Session for a new transport
            **options: Explicit ClientConfig fields (highest precedence),
                       plus oidc_url

        Raises:
            ConfigurationError: Missing credentials or invalid settings
        """
        if config is None:
            config = ClientConfig.load(config_file=config_file, environ=environ, **options)

        self._config = config
        self.logger = logging.getLogger(__name__)
        self.transport = transport if transport is not None else HTTPTransport(config, session=session)
        self.auth = AuthManager(config, self.transport)

        self.logger.debug(
            f"Client created for {config.bsn_base_url} "
            f"(timeout={config.timeout}s, retries={config.retry_count})"
        )

    @property
    def config(self) -> ClientConfig:
        return self._config

    def authenticate(self, ctx: Optional[RequestContext] = None) -> Token:
        """Authenticate with the configured credentials; later requests refresh automatically"""
        return self.auth.authenticate(ctx)

    def set_network(self, name: str, ctx: Optional[RequestContext] = None) -> NetworkContext:
        return self.auth.set_network(name, ctx)

    def set_network_by_id(self, network_id: int, ctx: Optional[RequestContext] = None) -> NetworkContext:
        return self.auth.set_network_by_id(network_id, ctx)

    def get_networks(self, ctx: Optional[RequestContext] = None) -> List[Network]:
        """All networks accessible to these credentials; no network context needed"""
        return self.auth.get_networks(ctx)

    def get_current_network(self) -> NetworkContext:
        return self.auth.get_current_network()

    def is_authenticated(self) -> bool:
        return self.auth.is_authenticated()

    def is_network_set(self) -> bool:
        return self.auth.is_network_set()

    def get_access_token(self) -> str:
        return self.auth.get_token()

    def ensure_ready(self, ctx: Optional[RequestContext] = None):
        """
        Authenticate, then make sure the session is bound: the selected
        network is re-bound after a token refresh, otherwise the configured
        default is bound. Without either this only authenticates.
        """
        self.auth.ensure_valid(ctx)
        if self._config.network_name or self.auth.is_network_set():
            self.auth.ensure_network_set(ctx)

    def with_authentication(self, fn: Callable[[], Any], ctx: Optional[RequestContext] = None) -> Any:
        """Run fn after making sure a valid token is cached"""
        self.auth.ensure_valid(ctx)
        return fn()

    def with_network_context(self, fn: Callable[[], Any], ctx: Optional[RequestContext] = None) -> Any:
        """
        Run fn with both a valid token and a bound network.

        Raises:
            AuthenticationError: No network selected and none configured
        """
        if not self._config.network_name and not self.auth.is_network_set():
            raise AuthenticationError("no network selected - use set_network() or configure BS_NETWORK")
        self.ensure_ready(ctx)
        return fn()

    def close(self):
        self.transport.close()

    def __enter__(self) -> "PurpleClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
