"""
pypurple Authentication & Session Manager

Maintains one bearer token and one bound network context per client,
safely under concurrent use:

- OAuth2 client-credentials exchange against the token endpoint
- Single-flight token refresh (N concurrent callers -> 1 exchange)
- Network (tenant) selection by name or ID, cached for the session
- Readiness guards (ensure_valid / ensure_network_set) used by every
  resource facade before it builds a request

State machine, from the caller's perspective:
    Unauthenticated -> (authenticate) -> Authenticated -> (ensure_network_set) -> Ready
Token expiry loops back through re-authentication without leaving Ready.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pypurple.communication.http_client import HTTPTransport
from pypurple.config.settings import ClientConfig
from pypurple.core.context import RequestContext
from pypurple.core.errors import (
    APIError, AuthenticationError, ConfigurationError, PurpleError,
    ValidationError
)
from pypurple.core.models import Network, NetworkContext, Token
from pypurple.monitoring.metrics import track_token_exchange

from .single_flight import SingleFlight


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _decode_networks(payload: Any) -> List[Network]:
    """Networks come back either as a bare list or as a page {items: [...]}"""
    if isinstance(payload, dict):
        payload = payload.get("items") or []
    if not isinstance(payload, list):
        raise APIError(200, "invalid_response", "network list is not a JSON array")

    networks = []
    for item in payload:
        if not isinstance(item, dict):
            raise APIError(200, "invalid_response", "network entry is not a JSON object", repr(item))
        try:
            networks.append(Network.from_dict(item))
        except (TypeError, ValueError) as e:
            raise APIError(200, "invalid_response", "malformed network entry", str(e)) from e
    return networks


class AuthManager:
    """
    Owns the session state shared by every resource operation.

    The token and network context are guarded by one lock; reads always see
    a complete Token object or None. Refreshes go through a SingleFlight so
    concurrent callers share one exchange. Network binds are serialized by a
    separate re-entrant lock because they perform I/O.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: HTTPTransport,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the auth manager.

        Args:
            config: Client settings (credentials, endpoints, safety margin,
                    default network)
            transport: HTTP transport used for token, bind and list requests
            clock: Returns the current aware UTC datetime (tests inject one)
        """
        self.config = config
        self.transport = transport
        self.logger = logging.getLogger(__name__)
        self._clock = clock or _utcnow

        self._lock = threading.Lock()
        self._network_lock = threading.RLock()
        self._refresh = SingleFlight("token refresh")

        self._token: Optional[Token] = None
        self._network: Optional[NetworkContext] = None
        # Token the current network was bound with; a refresh invalidates the bind
        self._bound_token: Optional[Token] = None

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    def authenticate(self, ctx: Optional[RequestContext] = None, force: bool = False) -> Token:
        """
        Obtain a bearer token via the client-credentials grant.

        Returns the cached token when it is still valid, unless force is set.
        Concurrent callers share one in-flight exchange.

        Args:
            ctx: Optional cancellation/deadline context
            force: Exchange credentials even if the cached token is valid

        Returns:
            The current valid Token

        Raises:
            AuthenticationError: Credentials rejected or unusable token response
            NetworkError: Token endpoint unreachable after retries
            APIError: Token endpoint server failure after retries
        """
        if not force:
            token = self._valid_token()
            if token is not None:
                return token

        return self._refresh.do(lambda: self._exchange_unless_fresh(ctx, force), ctx)

    def ensure_valid(self, ctx: Optional[RequestContext] = None) -> Token:
        """
        Make sure a usable token is cached, refreshing it if missing or
        within the safety margin of expiry. Safe to call before every request.
        """
        return self.authenticate(ctx)

    def invalidate_token(self, stale: Token) -> bool:
        """
        Drop the cached token if it is still the given one.

        Used after the server rejects a token early; comparing against the
        stale token keeps concurrent invalidations from discarding a token
        another thread just fetched.

        Returns:
            True if the cached token was dropped
        """
        with self._lock:
            if self._token is stale:
                self._token = None
                return True
            return False

    def get_token(self) -> str:
        """
        Current access token string.

        Raises:
            AuthenticationError: Never authenticated, or the token expired
        """
        with self._lock:
            token = self._token

        if token is None:
            raise AuthenticationError("not authenticated")
        if token.is_expired(self._clock()):
            raise AuthenticationError("token expired")
        return token.access_token

    def is_authenticated(self) -> bool:
        return self._valid_token() is not None

    def with_valid_token(self, fn: Callable[[str], Any], ctx: Optional[RequestContext] = None) -> Any:
        """
        Run fn(access_token) with a valid token.

        If the server rejects the token with 401 anyway (revoked, clock
        skew), re-authenticate once and run fn a second time. A second 401
        propagates.
        """
        token = self.ensure_valid(ctx)
        try:
            return fn(token.access_token)
        except AuthenticationError as e:
            if e.status_code != 401:
                raise
            self.logger.warning("Access token rejected by server; re-authenticating once")
            self.invalidate_token(token)
            fresh = self.ensure_valid(ctx)
            return fn(fresh.access_token)

    def _valid_token(self) -> Optional[Token]:
        with self._lock:
            token = self._token
        if token is not None and not token.is_expired(self._clock()):
            return token
        return None

    def _exchange_unless_fresh(self, ctx: Optional[RequestContext], force: bool) -> Token:
        # Another flight may have finished between our check and becoming leader
        if not force:
            token = self._valid_token()
            if token is not None:
                return token
        return self._exchange(ctx)

    def _exchange(self, ctx: Optional[RequestContext]) -> Token:
        """Perform one client-credentials exchange and cache the result"""
        credentials = self.config.credentials
        self.logger.info(f"Requesting access token from {self.config.token_endpoint}")

        try:
            payload = self.transport.post_form(
                self.config.token_endpoint,
                {"grant_type": "client_credentials"},
                basic_auth=(credentials.client_id, credentials.client_secret),
                idempotent=True,
                ctx=ctx
            )
        except AuthenticationError as e:
            track_token_exchange("auth_failure")
            self.logger.warning(f"Token request rejected: {e}")
            raise AuthenticationError("failed to get access token", e.cause) from e
        except APIError as e:
            if 400 <= e.status_code < 500 and e.status_code != 429:
                # invalid_client / unauthorized_client come back as 400
                track_token_exchange("auth_failure")
                self.logger.warning(f"Token request rejected: {e}")
                raise AuthenticationError("failed to get access token", e) from e
            track_token_exchange("error")
            self.logger.error(f"Token endpoint failure: {e}")
            raise
        except PurpleError as e:
            # NetworkError, or the caller's context was cancelled
            track_token_exchange("error")
            self.logger.error(f"Token request failed: {e}")
            raise

        try:
            token = Token.from_response(payload, self.config.token_safety_margin, self._clock())
        except AuthenticationError:
            track_token_exchange("auth_failure")
            raise

        with self._lock:
            self._token = token

        track_token_exchange("success")
        self.logger.info(f"Access token obtained, valid until {token.expires_at.isoformat()}")
        return token

    # ------------------------------------------------------------------
    # Network context
    # ------------------------------------------------------------------

    def get_networks(self, ctx: Optional[RequestContext] = None) -> List[Network]:
        """
        List all networks visible to the authenticated principal.

        Requires a valid token but not a bound network.
        """
        token = self.ensure_valid(ctx)
        return self._list_networks(token, ctx)

    def set_network(self, name: str, ctx: Optional[RequestContext] = None) -> NetworkContext:
        """
        Select the active network by name.

        The name is resolved against get_networks() before the bind request,
        so an unknown name fails without touching the session. On any failure
        the previous selection stays in place.

        Raises:
            ValidationError: Empty name
            APIError: Name not visible to this client (404 network_not_found)
                      or bind rejected
        """
        if not name or not name.strip():
            raise ValidationError("network_name", name, "network name cannot be empty")

        token = self.ensure_valid(ctx)

        with self._network_lock:
            current = self._current_binding(token)
            if current is not None and current.matches(name=name):
                return current

            networks = self._list_networks(token, ctx)
            match = next((n for n in networks if n.name == name), None)
            if match is None:
                available = ", ".join(n.name for n in networks) or "none"
                self.logger.warning(f"Network '{name}' not found")
                raise APIError(
                    404, "network_not_found",
                    f"network '{name}' is not visible to this client",
                    f"available networks: {available}"
                )

            context = NetworkContext(name=match.name, network_id=match.id, bound_at=self._clock())
            return self._bind(context, token, ctx)

    def set_network_by_id(self, network_id: int, ctx: Optional[RequestContext] = None) -> NetworkContext:
        """
        Select the active network by numeric ID.

        Raises:
            ValidationError: Non-positive ID
            APIError / AuthenticationError: Bind rejected
        """
        if isinstance(network_id, bool) or not isinstance(network_id, int) or network_id <= 0:
            raise ValidationError("network_id", network_id, "network ID must be positive")

        token = self.ensure_valid(ctx)

        with self._network_lock:
            current = self._current_binding(token)
            if current is not None and current.matches(network_id=network_id):
                return current

            context = NetworkContext(network_id=network_id, bound_at=self._clock())
            return self._bind(context, token, ctx)

    def ensure_network_set(self, ctx: Optional[RequestContext] = None) -> NetworkContext:
        """
        Make sure the session is bound to a network.

        - Already bound with the current token: no-op
        - Bound, but the token was refreshed since: re-bind the same network
        - Not bound, default network configured: resolve and bind it
        - Otherwise: ConfigurationError, with no request made

        Raises:
            ConfigurationError: No network selected and none configured
        """
        with self._lock:
            network = self._network
            bound_token = self._bound_token

        if network is not None and bound_token is not None and bound_token is self._valid_token():
            return network

        if network is None and not self.config.network_name:
            raise ConfigurationError(
                "network", "no network selected",
                "call set_network() or set BS_NETWORK"
            )

        token = self.ensure_valid(ctx)

        with self._network_lock:
            current = self._current_binding(token)
            if current is not None:
                return current

            with self._lock:
                network = self._network

            if network is not None:
                self.logger.info(f"Re-binding network {network.describe()} after token refresh")
                return self._bind(network, token, ctx)

            return self.set_network(self.config.network_name, ctx)

    def is_network_set(self) -> bool:
        with self._lock:
            return self._network is not None

    def get_current_network(self) -> NetworkContext:
        """
        The bound network context.

        Raises:
            AuthenticationError: No network selected
        """
        with self._lock:
            network = self._network
        if network is None:
            raise AuthenticationError("no network selected")
        return network

    def _current_binding(self, token: Token) -> Optional[NetworkContext]:
        """The cached network, if it was bound with this token"""
        with self._lock:
            if self._network is not None and self._bound_token is token:
                return self._network
        return None

    def _list_networks(self, token: Token, ctx: Optional[RequestContext]) -> List[Network]:
        networks = self.transport.get_with_auth(
            token.access_token,
            self.config.bsn_url("Self/Networks"),
            decoder=_decode_networks,
            ctx=ctx
        )
        return networks or []

    def _bind(self, context: NetworkContext, token: Token, ctx: Optional[RequestContext]) -> NetworkContext:
        """Issue the idempotent session bind; cache the selection only on success"""
        payload: Dict[str, Any] = context.bind_payload()

        try:
            self.transport.put_with_auth(
                token.access_token,
                self.config.bsn_url("Self/Session/Network"),
                payload,
                ctx=ctx
            )
        except PurpleError as e:
            self.logger.warning(f"Failed to set network {context.describe()}: {e}")
            raise

        with self._lock:
            self._network = context
            self._bound_token = token

        self.logger.info(f"Network {context.describe()} selected")
        return context
