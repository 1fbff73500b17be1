"""
Session Data Models

Dataclasses for the state the auth manager owns: client credentials, the
cached bearer token, networks visible to the principal, and the bound
network context.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from .errors import AuthenticationError, ConfigurationError


@dataclass(frozen=True)
class Credentials:
    """OAuth2 client credentials"""
    client_id: str
    client_secret: str = field(repr=False)

    def __post_init__(self):
        if not self.client_id:
            raise ConfigurationError(
                "client_id", "field is required", "set BS_CLIENT_ID environment variable"
            )
        if not self.client_secret:
            raise ConfigurationError(
                "client_secret", "field is required", "set BS_SECRET environment variable"
            )


@dataclass(frozen=True)
class Token:
    """
    Bearer token with an absolute expiry.

    expires_at already has the safety margin subtracted, so a token is
    usable exactly while now < expires_at.
    """
    access_token: str = field(repr=False)
    expires_at: datetime
    token_type: str = "Bearer"
    scope: str = ""
    issued_at: Optional[datetime] = None
    claims: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(
        cls,
        payload: Dict[str, Any],
        safety_margin: float,
        now: datetime
    ) -> "Token":
        """
        Build a token from a client-credentials grant response.

        Args:
            payload: {access_token, expires_in, token_type, scope}
            safety_margin: Seconds to shave off the server-reported lifetime
            now: Issue time

        Raises:
            AuthenticationError: If the response carries no usable token or lifetime
        """
        if not isinstance(payload, dict):
            raise AuthenticationError("token response is not a JSON object")

        access_token = payload.get("access_token")
        if not access_token:
            raise AuthenticationError("token response has no access_token")

        claims = _peek_claims(access_token)

        expires_in = payload.get("expires_in")
        if expires_in is None and "exp" in claims:
            # Keycloak tokens carry exp even when expires_in is omitted
            expires_in = claims["exp"] - now.timestamp()
        try:
            lifetime = float(expires_in)
        except (TypeError, ValueError):
            raise AuthenticationError(f"token response has invalid expires_in: {expires_in!r}")
        if lifetime <= 0:
            raise AuthenticationError("token response is already expired")

        margin = min(safety_margin, lifetime / 2)

        return cls(
            access_token=access_token,
            expires_at=now + timedelta(seconds=lifetime - margin),
            token_type=payload.get("token_type") or "Bearer",
            scope=payload.get("scope") or claims.get("scope", ""),
            issued_at=now,
            claims=claims,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    @property
    def subject(self) -> Optional[str]:
        return self.claims.get("sub")


def _peek_claims(access_token: str) -> Dict[str, Any]:
    """Read JWT claims without verifying; opaque tokens yield {}"""
    try:
        return jwt.decode(access_token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return {}


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Network:
    """A BSN.cloud network (tenant)"""
    id: int
    name: str
    creation_date: Optional[datetime] = None
    last_modified_date: Optional[datetime] = None
    is_locked_out: bool = False
    subscription: Dict[str, Any] = field(default_factory=dict)
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Network":
        return cls(
            id=int(data.get("id") or 0),
            name=data.get("name", ""),
            creation_date=_parse_timestamp(data.get("creationDate")),
            last_modified_date=_parse_timestamp(data.get("lastModifiedDate")),
            is_locked_out=bool(data.get("isLockedOut", False)),
            subscription=data.get("subscription") or {},
            settings=data.get("settings") or {},
        )


@dataclass(frozen=True)
class NetworkContext:
    """The network the session is bound to"""
    name: Optional[str] = None
    network_id: Optional[int] = None
    bound_at: Optional[datetime] = None

    def matches(self, name: Optional[str] = None, network_id: Optional[int] = None) -> bool:
        if name is not None:
            return self.name == name
        if network_id is not None:
            return self.network_id == network_id
        return False

    def bind_payload(self) -> Dict[str, Any]:
        """Body for the session network bind request"""
        if self.name:
            return {"name": self.name}
        return {"id": self.network_id}

    def describe(self) -> str:
        if self.name:
            return f"'{self.name}'"
        return f"ID {self.network_id}"
