"""
Shared Test Fixtures

A scripted requests session stands in for BSN.cloud so the transport,
auth manager and client run end to end without network access.
"""

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest
import requests

from pypurple.communication.http_client import HTTPTransport
from pypurple.config.settings import ClientConfig, DEFAULT_TOKEN_ENDPOINT
from pypurple.security.auth import AuthManager


TOKEN_URL = DEFAULT_TOKEN_ENDPOINT
NETWORKS_URL = "https://api.bsn.cloud/2022/06/REST/Self/Networks"
BIND_URL = "https://api.bsn.cloud/2022/06/REST/Self/Session/Network"

NETWORKS = [
    {"id": 1, "name": "Production", "creationDate": "2023-01-05T10:00:00Z", "isLockedOut": False},
    {"id": 2, "name": "Staging", "creationDate": "2023-02-10T12:30:00Z", "isLockedOut": False},
]


def make_response(status=200, json_body=None, text=None, headers=None, reason=""):
    """Build a real requests.Response without touching the network"""
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.encoding = "utf-8"
    if json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    elif text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = b""
    response.headers.update(headers or {})
    return response


def token_response(access_token="token-1", expires_in=3600):
    return make_response(200, {
        "access_token": access_token,
        "expires_in": expires_in,
        "token_type": "Bearer",
        "scope": "bsn.api.main.operations",
    })


class RecordedCall:
    def __init__(self, method, url, kwargs):
        self.method = method
        self.url = url
        self.kwargs = kwargs

    @property
    def headers(self):
        return self.kwargs.get("headers") or {}

    @property
    def json(self):
        return self.kwargs.get("json")


class FakeSession:
    """
    Scripted stand-in for requests.Session.

    Each (method, url) route holds a queue of responses, exceptions, or
    callables(method, url, kwargs) returning either. The last entry repeats.
    """

    def __init__(self):
        self.headers = {}
        self.calls = []
        self.routes = {}
        self.closed = False
        self._lock = threading.Lock()

    def add(self, method, url, *items):
        self.routes.setdefault((method, url), []).extend(items)
        return self

    def calls_to(self, method, url):
        return [c for c in self.calls if c.method == method and c.url == url]

    def request(self, method, url, **kwargs):
        with self._lock:
            self.calls.append(RecordedCall(method, url, kwargs))
            queue = self.routes.get((method, url))
            if not queue:
                raise AssertionError(f"unexpected request {method} {url}")
            item = queue.pop(0) if len(queue) > 1 else queue[0]

        if callable(item) and not isinstance(item, BaseException):
            item = item(method, url, kwargs)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeClock:
    """Controllable replacement for the auth manager's UTC clock"""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Client config with instant retries"""
    return ClientConfig(
        client_id="test-client",
        client_secret="test-secret",
        retry_count=3,
        retry_wait=0.0,
        retry_max_wait=0.0,
    )


@pytest.fixture
def transport(config, session):
    return HTTPTransport(config, session=session)


@pytest.fixture
def auth(config, transport, clock):
    return AuthManager(config, transport, clock=clock)


@pytest.fixture
def bsn_session(session):
    """Session scripted with a token endpoint, a network list and a bind endpoint"""
    session.add("POST", TOKEN_URL, token_response("token-1"), token_response("token-2"))
    session.add("GET", NETWORKS_URL, make_response(200, NETWORKS))
    session.add("PUT", BIND_URL, make_response(204))
    return session
