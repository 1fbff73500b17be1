"""
Tests for the HTTP transport: error classification, retry policy,
decoding and credential-safe debug logging
"""

import logging

import pytest
import requests
from prometheus_client import REGISTRY

from pypurple.communication import HTTPTransport, RequestSpec, UnwrapStrategy
from pypurple.core.context import RequestContext
from pypurple.core.errors import (
    APIError, AuthenticationError, NetworkError, OperationCancelledError,
    ValidationError, is_authentication_error
)

from conftest import make_response


URL = "https://api.bsn.cloud/2022/06/REST/Devices/"


def sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestSuccessfulRequests:
    """Test request construction and decoding"""

    def test_get_with_auth(self, transport, session):
        session.add("GET", URL, make_response(200, {"items": [{"serial": "ABC"}]}))

        result = transport.get_with_auth("tok", URL, params={"pageSize": 10})

        assert result == {"items": [{"serial": "ABC"}]}
        call = session.calls[0]
        assert call.headers["Authorization"] == "Bearer tok"
        assert call.kwargs["params"] == {"pageSize": 10}
        assert call.kwargs["timeout"] == 30.0

    def test_session_headers(self, transport, session):
        assert session.headers["Accept"] == "application/json"
        assert session.headers["User-Agent"].startswith("pypurple-sdk/")

    def test_json_body(self, transport, session):
        session.add("PUT", URL, make_response(200, {"ok": True}))

        transport.put_with_auth("tok", URL, {"name": "Lobby"})

        call = session.calls[0]
        assert call.json == {"name": "Lobby"}
        assert call.headers["Content-Type"] == "application/json"

    def test_form_with_basic_auth(self, transport, session):
        session.add("POST", URL, make_response(200, {"access_token": "a"}))

        transport.post_form(URL, {"grant_type": "client_credentials"}, basic_auth=("id", "secret"))

        call = session.calls[0]
        assert call.kwargs["data"] == {"grant_type": "client_credentials"}
        assert call.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert isinstance(call.kwargs["auth"], requests.auth.HTTPBasicAuth)
        assert call.kwargs["auth"].username == "id"

    def test_empty_body_returns_none(self, transport, session):
        session.add("DELETE", URL, make_response(204))
        assert transport.delete_with_auth("tok", URL) is None

    def test_decoder_applied_after_unwrap(self, transport, session):
        session.add("GET", URL, make_response(200, {"error": None, "result": {"id": 3}}))

        result = transport.get_with_auth("tok", URL, unwrap=UnwrapStrategy.RESULT, decoder=lambda r: r["id"])

        assert result == 3

    def test_raw_bytes(self, transport, session):
        response = make_response(200)
        response._content = b"\x89PNG\r\n"
        session.add("GET", URL, response)

        assert transport.get_bytes_with_auth("tok", URL) == b"\x89PNG\r\n"

    def test_invalid_json(self, transport, session):
        session.add("GET", URL, make_response(200, text="<html>oops</html>"))

        with pytest.raises(APIError) as exc_info:
            transport.get(URL)
        assert exc_info.value.code == "invalid_response"

    def test_context_manager_closes_session(self, config, session):
        with HTTPTransport(config, session=session):
            pass
        assert session.closed


class TestErrorClassification:
    """Test conversion of failure responses"""

    def test_error_body_fields(self, transport, session):
        session.add("GET", URL, make_response(404, {
            "error": "not_found", "error_description": "Device not found", "details": "serial XYZ"
        }))

        with pytest.raises(APIError) as exc_info:
            transport.get_with_auth("tok", URL)

        err = exc_info.value
        assert (err.status_code, err.code, err.message, err.details) == \
            (404, "not_found", "Device not found", "serial XYZ")
        assert len(session.calls) == 1

    def test_plain_text_body_becomes_details(self, transport, session):
        session.add("GET", URL, make_response(400, text="bad filter expression", reason="Bad Request"))

        with pytest.raises(APIError) as exc_info:
            transport.get_with_auth("tok", URL)

        assert exc_info.value.code == "Bad Request"
        assert exc_info.value.message == "Request failed"
        assert exc_info.value.details == "bad filter expression"

    def test_status_phrase_when_no_reason(self, transport, session):
        session.add("GET", URL, make_response(409))

        with pytest.raises(APIError) as exc_info:
            transport.get_with_auth("tok", URL)
        assert exc_info.value.code == "Conflict"

    def test_401_is_authentication_error(self, transport, session):
        session.add("GET", URL, make_response(401, {"error": "invalid_token"}))

        with pytest.raises(AuthenticationError) as exc_info:
            transport.get_with_auth("expired", URL)

        assert exc_info.value.reason == "invalid or expired token"
        assert exc_info.value.status_code == 401
        assert len(session.calls) == 1

    def test_403_is_authentication_error(self, transport, session):
        session.add("GET", URL, make_response(403))

        with pytest.raises(AuthenticationError) as exc_info:
            transport.get_with_auth("tok", URL)

        assert exc_info.value.reason == "insufficient permissions"
        assert is_authentication_error(exc_info.value)

    def test_unusable_url(self, transport, session):
        session.add("GET", "not a url", requests.exceptions.MissingSchema("no schema"))

        with pytest.raises(ValidationError):
            transport.get("not a url")
        assert len(session.calls) == 1


class TestRetryPolicy:
    """Test which failures are retried and how often"""

    def test_server_error_retried_until_exhausted(self, transport, session):
        session.add("GET", URL, make_response(503))

        with pytest.raises(APIError) as exc_info:
            transport.get_with_auth("tok", URL)

        assert exc_info.value.status_code == 503
        assert len(session.calls) == 4

    def test_recovers_after_transient_failure(self, transport, session):
        session.add("GET", URL, make_response(502), make_response(200, {"ok": True}))

        assert transport.get_with_auth("tok", URL) == {"ok": True}
        assert len(session.calls) == 2

    @pytest.mark.parametrize("status", [400, 404, 422])
    def test_client_errors_not_retried(self, transport, session, status):
        session.add("GET", URL, make_response(status))

        with pytest.raises(APIError):
            transport.get_with_auth("tok", URL)
        assert len(session.calls) == 1

    def test_connection_error_retried(self, transport, session):
        session.add("GET", URL, requests.exceptions.ConnectionError("refused"))

        with pytest.raises(NetworkError) as exc_info:
            transport.get_with_auth("tok", URL)

        assert len(session.calls) == 4
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)

    def test_timeout_is_network_error(self, transport, session):
        session.add("GET", URL, requests.exceptions.ReadTimeout("slow"), make_response(200, {"ok": True}))

        assert transport.get_with_auth("tok", URL) == {"ok": True}
        assert len(session.calls) == 2

    def test_post_not_retried_on_server_error(self, transport, session):
        session.add("POST", URL, make_response(503))

        with pytest.raises(APIError):
            transport.post_with_auth("tok", URL, {"name": "new group"})
        assert len(session.calls) == 1

    def test_post_not_retried_on_connection_error(self, transport, session):
        session.add("POST", URL, requests.exceptions.ConnectionError("reset"))

        with pytest.raises(NetworkError):
            transport.post_with_auth("tok", URL, {"name": "new group"})
        assert len(session.calls) == 1

    def test_post_retried_on_rate_limit(self, transport, session):
        session.add("POST", URL, make_response(429), make_response(201, {"id": 9}))

        assert transport.post_with_auth("tok", URL, {"name": "g"}) == {"id": 9}
        assert len(session.calls) == 2

    def test_idempotent_post_retried(self, transport, session):
        session.add("POST", URL, make_response(500), make_response(200, {"ok": True}))

        assert transport.post_with_auth("tok", URL, {"q": 1}, idempotent=True) == {"ok": True}

    def test_zero_retries(self, config, session):
        transport = HTTPTransport(config.with_overrides(retry_count=0), session=session)
        session.add("GET", URL, make_response(500))

        with pytest.raises(APIError):
            transport.get(URL)
        assert len(session.calls) == 1

    def test_retries_counted_in_metrics(self, transport, session):
        labels = {"method": "GET", "host": "api.bsn.cloud", "reason": "503"}
        before = sample("pypurple_http_retries_total", labels)
        session.add("GET", URL, make_response(503), make_response(200, {}))

        transport.get_with_auth("tok", URL)

        assert sample("pypurple_http_retries_total", labels) == before + 1


class TestBackoff:
    """Test backoff delay computation"""

    @pytest.fixture
    def slow_transport(self, config, session):
        return HTTPTransport(config.with_overrides(retry_wait=1.0, retry_max_wait=10.0), session=session)

    def test_linear_growth_capped(self, slow_transport):
        err = APIError(503, "x", "y")
        assert slow_transport._backoff_delay(1, err) == 1.0
        assert slow_transport._backoff_delay(3, err) == 3.0
        assert slow_transport._backoff_delay(50, err) == 10.0

    def test_retry_after_raises_delay(self, slow_transport):
        err = APIError(429, "x", "y", retry_after=4.0)
        assert slow_transport._backoff_delay(1, err) == 4.0

    def test_retry_after_capped(self, slow_transport):
        err = APIError(429, "x", "y", retry_after=120.0)
        assert slow_transport._backoff_delay(1, err) == 10.0

    def test_retry_after_header_parsed(self, transport, session):
        session.add("GET", URL, make_response(429, headers={"Retry-After": "7"}))
        transport = HTTPTransport(transport.config.with_overrides(retry_count=0), session=session)

        with pytest.raises(APIError) as exc_info:
            transport.get(URL)
        assert exc_info.value.retry_after == 7.0


class TestCancellation:
    """Test caller cancellation and deadlines"""

    def test_cancelled_before_send(self, transport, session):
        ctx = RequestContext()
        ctx.cancel()

        with pytest.raises(OperationCancelledError):
            transport.get(URL, ctx=ctx)
        assert session.calls == []

    def test_cancel_during_backoff(self, config, session):
        transport = HTTPTransport(config.with_overrides(retry_wait=5.0, retry_max_wait=10.0), session=session)
        ctx = RequestContext()

        def fail_and_cancel(method, url, kwargs):
            ctx.cancel("shutting down")
            return make_response(503)

        session.add("GET", URL, fail_and_cancel)

        with pytest.raises(OperationCancelledError, match="shutting down"):
            transport.get(URL, ctx=ctx)
        assert len(session.calls) == 1

    def test_timeout_clipped_to_deadline(self, transport, session):
        session.add("GET", URL, make_response(200, {}))

        transport.get(URL, ctx=RequestContext.with_timeout(2.0))

        assert session.calls[0].kwargs["timeout"] <= 2.0


class TestDebugLogging:
    """Test that debug logs never contain credentials"""

    def test_debug_client_leaves_logger_level(self, config, session):
        logger = logging.getLogger("pypurple.communication.http_client")
        level = logger.level

        HTTPTransport(config.with_overrides(debug=True), session=session)

        assert logger.level == level

    def test_no_request_logs_without_debug(self, transport, session, caplog):
        session.add("GET", URL, make_response(200, {"ok": True}))
        caplog.set_level(logging.DEBUG, logger="pypurple.communication.http_client")

        transport.get_with_auth("tok", URL)

        assert "HTTP GET" not in caplog.text

    def test_bearer_and_tokens_redacted(self, config, session, caplog):
        transport = HTTPTransport(config.with_overrides(debug=True), session=session)
        session.add("POST", URL, make_response(200, {"access_token": "leaky-access-token", "expires_in": 3600}))
        session.add("GET", URL, make_response(200, {"ok": True}))
        caplog.set_level(logging.DEBUG, logger="pypurple.communication.http_client")

        transport.post_form(URL, {"grant_type": "client_credentials", "client_secret": "form-secret"},
                            basic_auth=("id", "secret"))
        transport.get_with_auth("leaky-bearer-token", URL)

        assert "HTTP GET" in caplog.text
        assert "Bearer ***" in caplog.text
        assert "leaky-bearer-token" not in caplog.text
        assert "leaky-access-token" not in caplog.text
        assert "form-secret" not in caplog.text
