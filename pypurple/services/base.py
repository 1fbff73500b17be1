"""
Resource Service Base

The seam every resource facade (devices, content, presentations, groups,
remote diagnostics, ...) is built on. A facade only knows the capability
interface below; auth, network binding, retry and envelope handling all
live in the shared core.
"""

from typing import Any, Callable, Dict, Optional, Protocol

from pypurple.communication.envelope import UnwrapStrategy
from pypurple.communication.http_client import HTTPTransport
from pypurple.communication.request_spec import RequestSpec
from pypurple.config.settings import ClientConfig
from pypurple.core.context import RequestContext
from pypurple.core.errors import ValidationError


class SessionProvider(Protocol):
    """What a resource facade needs from the auth manager"""

    def ensure_valid(self, ctx: Optional[RequestContext] = None) -> Any: ...

    def ensure_network_set(self, ctx: Optional[RequestContext] = None) -> Any: ...

    def get_token(self) -> str: ...

    def with_valid_token(self, fn: Callable[[str], Any], ctx: Optional[RequestContext] = None) -> Any: ...


class BaseService:
    """
    Base class for resource facades.

    Subclasses validate their arguments with _require(), build URLs with
    bsn_url()/rdws_url(), and call _request().
    """

    def __init__(self, config: ClientConfig, transport: HTTPTransport, auth: SessionProvider):
        self.config = config
        self.transport = transport
        self.auth = auth

    def bsn_url(self, path: str) -> str:
        return self.config.bsn_url(path)

    def rdws_url(self, path: str) -> str:
        return self.config.rdws_url(path)

    @staticmethod
    def _require(field: str, value: Any, reason: str):
        """
        Fail fast on an empty string/None or a non-positive integer.

        Raises:
            ValidationError: Before any request is built
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(field, value, reason)
        if isinstance(value, int) and not isinstance(value, bool) and value <= 0:
            raise ValidationError(field, value, reason)

    def _request(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        unwrap: UnwrapStrategy = UnwrapStrategy.DIRECT,
        decoder: Optional[Callable[[Any], Any]] = None,
        require_network: bool = True,
        idempotent: Optional[bool] = None,
        raw: bool = False,
        ctx: Optional[RequestContext] = None
    ) -> Any:
        """
        Authenticated request with the readiness guards applied.

        Order: valid token -> bound network (if required) -> transport.do.
        A 401 triggers one re-authentication via with_valid_token.
        """
        def call(access_token: str) -> Any:
            if require_network:
                self.auth.ensure_network_set(ctx)
            spec = RequestSpec(
                method, url,
                body=body,
                params=params,
                token=access_token,
                unwrap=unwrap,
                decoder=decoder,
                idempotent=idempotent,
                raw=raw
            )
            return self.transport.do(spec, ctx)

        return self.auth.with_valid_token(call, ctx)
