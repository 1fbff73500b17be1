"""
HTTP Transport

Executes one request spec against BSN.cloud: attaches the bearer token,
applies the per-attempt timeout, retries classified-retryable failures with
backoff, and decodes/unwraps the response.

All failures leave this module as pypurple errors; requests exceptions are
kept as the __cause__.
"""

import logging
import time
from http import HTTPStatus
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

import requests
from requests.auth import HTTPBasicAuth

from pypurple.config.settings import ClientConfig
from pypurple.core.context import RequestContext, ensure_context
from pypurple.core.errors import (
    APIError, AuthenticationError, NetworkError, OperationCancelledError,
    PurpleError, ValidationError
)
from pypurple.logging.logger import RedactingFilter, redact, redact_headers
from pypurple.monitoring.metrics import (
    track_http_latency, track_http_request, track_http_retry
)

from .envelope import UnwrapStrategy, unwrap
from .request_spec import RequestSpec


# Longest response body echoed into debug logs
DEBUG_BODY_LIMIT = 2000

# Longest raw body kept as APIError details when it isn't a JSON error
ERROR_BODY_LIMIT = 500


class HTTPTransport:
    """
    Pooled HTTP client with BSN.cloud error classification and retry policy.

    Safe to share between threads; each call builds its own request and the
    underlying requests.Session pools connections.
    """

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        """
        Initialize the transport.

        Args:
            config: Client settings (timeout, retry policy, debug flag, user agent)
            session: Optional pre-built session (tests inject a fake here)
        """
        self.config = config
        self.logger = logging.getLogger(__name__)

        if not any(isinstance(f, RedactingFilter) for f in self.logger.filters):
            self.logger.addFilter(RedactingFilter())

        # Session for connection pooling
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': config.user_agent
        })

    def do(self, spec: RequestSpec, ctx: Optional[RequestContext] = None) -> Any:
        """
        Execute a request with the configured retry policy.

        Args:
            spec: What to send and how to decode the answer
            ctx: Optional cancellation/deadline context

        Returns:
            Decoded payload (after unwrapping and spec.decoder), raw bytes for
            raw specs, or None for an empty body

        Raises:
            APIError: Non-2xx response or malformed body
            AuthenticationError: 401/403 response
            NetworkError: Transport failure after all attempts
            OperationCancelledError: Context cancelled or deadline passed
            ValidationError: Unusable URL
        """
        ctx = ensure_context(ctx)
        max_attempts = self.config.retry_count + 1
        attempt = 0

        while True:
            attempt += 1
            ctx.raise_if_cancelled(spec.operation)

            try:
                return self._attempt(spec, ctx)
            except PurpleError as e:
                if attempt >= max_attempts or not self._should_retry(spec, e):
                    if attempt > 1:
                        self.logger.error(
                            f"{spec.operation} failed after {attempt} attempts: {e}"
                        )
                    raise

                delay = self._backoff_delay(attempt, e)
                self.logger.warning(
                    f"Retry {attempt}/{self.config.retry_count} for {spec.operation} "
                    f"after {delay:.1f}s due to: {e}"
                )
                track_http_retry(spec.method, _host(spec.url), _reason(e))

                if ctx.wait(delay):
                    raise OperationCancelledError(spec.operation, ctx.reason) from e

    def _attempt(self, spec: RequestSpec, ctx: RequestContext) -> Any:
        """Send the request once and decode the result"""
        headers = dict(spec.headers)
        kwargs: Dict[str, Any] = {
            'params': spec.params,
            'timeout': self._attempt_timeout(ctx),
        }

        if spec.token:
            headers['Authorization'] = f"Bearer {spec.token}"

        if spec.form is not None:
            kwargs['data'] = spec.form
            headers['Content-Type'] = 'application/x-www-form-urlencoded'
        elif spec.body is not None:
            kwargs['json'] = spec.body
            headers['Content-Type'] = 'application/json'

        if spec.basic_auth:
            kwargs['auth'] = HTTPBasicAuth(*spec.basic_auth)

        self._log_request(spec, headers)

        host = _host(spec.url)
        started = time.monotonic()
        try:
            response = self.session.request(spec.method, spec.url, headers=headers, **kwargs)

        except (requests.exceptions.MissingSchema,
                requests.exceptions.InvalidSchema,
                requests.exceptions.InvalidURL) as e:
            raise ValidationError("url", spec.url, f"unusable request URL: {e}") from e

        except requests.exceptions.Timeout as e:
            track_http_request(spec.method, host, "timeout")
            if ctx.cancelled:
                raise OperationCancelledError(spec.operation, ctx.reason) from e
            self.logger.warning(f"{spec.operation} timed out after {kwargs['timeout']:.1f}s")
            raise NetworkError(spec.operation, e) from e

        except requests.exceptions.RequestException as e:
            track_http_request(spec.method, host, "connection_error")
            self.logger.warning(f"Connection error during {spec.operation}: {e}")
            raise NetworkError(spec.operation, e) from e

        finally:
            track_http_latency(spec.method, host, time.monotonic() - started)

        track_http_request(spec.method, host, str(response.status_code))
        self._log_response(spec, response)

        if not 200 <= response.status_code < 300:
            raise self._classify_failure(response)

        if spec.raw:
            return response.content

        payload = unwrap(self._decode(response), spec.unwrap, response.status_code)
        if spec.decoder is not None and payload is not None:
            return spec.decoder(payload)
        return payload

    def _attempt_timeout(self, ctx: RequestContext) -> float:
        """Per-attempt timeout, clipped to whatever the caller's deadline leaves"""
        timeout = self.config.timeout
        remaining = ctx.remaining()
        if remaining is not None:
            timeout = min(timeout, max(remaining, 0.001))
        return timeout

    def _should_retry(self, spec: RequestSpec, error: PurpleError) -> bool:
        if not error.retryable:
            return False
        if spec.idempotent:
            return True
        # A 429 was rejected before processing, so even a creating POST is safe
        return isinstance(error, APIError) and error.status_code == 429

    def _backoff_delay(self, attempt: int, error: PurpleError) -> float:
        """Linear backoff capped at retry_max_wait, raised by Retry-After"""
        delay = min(self.config.retry_wait * attempt, self.config.retry_max_wait)
        retry_after = getattr(error, 'retry_after', None)
        if retry_after:
            delay = min(max(delay, retry_after), self.config.retry_max_wait)
        return delay

    def _decode(self, response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                response.status_code, "invalid_response",
                "response body is not valid JSON",
                _snippet(response.text)
            ) from e

    def _classify_failure(self, response: requests.Response) -> PurpleError:
        """
        Convert a non-2xx response into an APIError (or AuthenticationError
        for 401/403), parsing {error, error_description, details} bodies.
        """
        status = response.status_code
        code, message, details = "", "", ""

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None

        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict):
                code = str(error.get("code") or "")
                message = str(error.get("message") or "")
                details = str(error.get("details") or "")
            elif error:
                code = str(error)
            message = message or str(data.get("error_description") or data.get("message") or "")
            details = details or str(data.get("details") or "")

        if not code and not message:
            text = response.text or ""
            if text and len(text) < ERROR_BODY_LIMIT:
                details = text

        if not code:
            code = response.reason or _status_phrase(status)
        if not message:
            message = "Request failed"

        api_error = APIError(
            status, code, message, details,
            retry_after=_retry_after(response.headers.get('Retry-After'))
        )

        if status == 401:
            return AuthenticationError("invalid or expired token", api_error)
        if status == 403:
            return AuthenticationError("insufficient permissions", api_error)
        return api_error

    def _log_request(self, spec: RequestSpec, headers: Dict[str, str]):
        if not self.config.debug:
            return
        body = spec.body if spec.body is not None else spec.form
        self.logger.debug(
            f"HTTP {spec.method} {spec.url} params={spec.params} "
            f"headers={redact_headers(headers)} body={_snippet(redact(str(body)))}"
        )

    def _log_response(self, spec: RequestSpec, response: requests.Response):
        if not self.config.debug:
            return
        body = "<binary>" if spec.raw else _snippet(redact(response.text or ""))
        self.logger.debug(
            f"HTTP {response.status_code} for {spec.method} {spec.url} "
            f"headers={redact_headers(dict(response.headers))} body={body}"
        )

    def get(self, url: str, unwrap: UnwrapStrategy = UnwrapStrategy.DIRECT,
            decoder: Optional[Callable[[Any], Any]] = None,
            params: Optional[Dict[str, Any]] = None,
            ctx: Optional[RequestContext] = None) -> Any:
        """Perform an unauthenticated GET request"""
        return self.do(RequestSpec("GET", url, params=params, unwrap=unwrap, decoder=decoder), ctx)

    def post(self, url: str, body: Any = None,
             unwrap: UnwrapStrategy = UnwrapStrategy.DIRECT,
             decoder: Optional[Callable[[Any], Any]] = None,
             idempotent: Optional[bool] = None,
             ctx: Optional[RequestContext] = None) -> Any:
        """Perform an unauthenticated POST request"""
        return self.do(RequestSpec(
            "POST", url, body=body, unwrap=unwrap, decoder=decoder, idempotent=idempotent
        ), ctx)

    def put(self, url: str, body: Any = None,
            unwrap: UnwrapStrategy = UnwrapStrategy.DIRECT,
            decoder: Optional[Callable[[Any], Any]] = None,
            ctx: Optional[RequestContext] = None) -> Any:
        """Perform an unauthenticated PUT request"""
        return self.do(RequestSpec("PUT", url, body=body, unwrap=unwrap, decoder=decoder), ctx)

    def get_with_auth(self, token: str, url: str,
                      unwrap: UnwrapStrategy = UnwrapStrategy.DIRECT,
                      decoder: Optional[Callable[[Any], Any]] = None,
                      params: Optional[Dict[str, Any]] = None,
                      ctx: Optional[RequestContext] = None) -> Any:
        """Perform a GET request with a bearer token"""
        return self.do(RequestSpec(
            "GET", url, token=token, params=params, unwrap=unwrap, decoder=decoder
        ), ctx)

    def post_with_auth(self, token: str, url: str, body: Any = None,
                       unwrap: UnwrapStrategy = UnwrapStrategy.DIRECT,
                       decoder: Optional[Callable[[Any], Any]] = None,
                       idempotent: Optional[bool] = None,
                       ctx: Optional[RequestContext] = None) -> Any:
        """
        Perform a POST request with a bearer token.

        POSTs are not auto-retried on transport failure unless the caller
        marks them idempotent.
        """
        return self.do(RequestSpec(
            "POST", url, token=token, body=body, unwrap=unwrap,
            decoder=decoder, idempotent=idempotent
        ), ctx)

    def put_with_auth(self, token: str, url: str, body: Any = None,
                      unwrap: UnwrapStrategy = UnwrapStrategy.DIRECT,
                      decoder: Optional[Callable[[Any], Any]] = None,
                      ctx: Optional[RequestContext] = None) -> Any:
        """Perform a PUT request with a bearer token"""
        return self.do(RequestSpec(
            "PUT", url, token=token, body=body, unwrap=unwrap, decoder=decoder
        ), ctx)

    def delete_with_auth(self, token: str, url: str,
                         unwrap: UnwrapStrategy = UnwrapStrategy.DIRECT,
                         decoder: Optional[Callable[[Any], Any]] = None,
                         params: Optional[Dict[str, Any]] = None,
                         ctx: Optional[RequestContext] = None) -> Any:
        """Perform a DELETE request with a bearer token"""
        return self.do(RequestSpec(
            "DELETE", url, token=token, params=params, unwrap=unwrap, decoder=decoder
        ), ctx)

    def get_bytes_with_auth(self, token: str, url: str,
                            params: Optional[Dict[str, Any]] = None,
                            ctx: Optional[RequestContext] = None) -> bytes:
        """Download a raw body (files, snapshots) with a bearer token"""
        return self.do(RequestSpec("GET", url, token=token, params=params, raw=True), ctx)

    def post_form(self, url: str, data: Dict[str, str],
                  basic_auth: Optional[Tuple[str, str]] = None,
                  decoder: Optional[Callable[[Any], Any]] = None,
                  idempotent: Optional[bool] = None,
                  ctx: Optional[RequestContext] = None) -> Any:
        """
        POST an url-encoded form, optionally with HTTP basic auth.

        Used for the OAuth2 client-credentials exchange.
        """
        return self.do(RequestSpec(
            "POST", url, form=data, basic_auth=basic_auth,
            decoder=decoder, idempotent=idempotent
        ), ctx)

    def close(self):
        """Close the HTTP session"""
        self.session.close()

    def __enter__(self) -> "HTTPTransport":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def _host(url: str) -> str:
    return urlparse(url).netloc or "unknown"


def _reason(error: PurpleError) -> str:
    if isinstance(error, APIError):
        return str(error.status_code)
    return type(error).__name__


def _status_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"HTTP {status}"


def _retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After in delta-seconds form; HTTP-date values are ignored"""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _snippet(text: str) -> str:
    if len(text) > DEBUG_BODY_LIMIT:
        return text[:DEBUG_BODY_LIMIT] + "...(truncated)"
    return text
