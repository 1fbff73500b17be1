"""
Response Envelopes

BSN.cloud endpoints answer in one of three shapes. The caller picks the
matching UnwrapStrategy per request; unwrap() returns the payload inside.

    DIRECT       {...} or [...]                        returned as-is
    RESULT       {"error": null, "result": ...}        B-Deploy style
    DATA_RESULT  {"route", "method", "data": {"result": ...}}   remote diagnostics
"""

from enum import Enum
from typing import Any

from pypurple.core.errors import APIError


class UnwrapStrategy(Enum):
    """How to extract the payload from a decoded response body"""
    DIRECT = "direct"
    RESULT = "result"
    DATA_RESULT = "data_result"


def unwrap(body: Any, strategy: UnwrapStrategy, status_code: int = 200) -> Any:
    """
    Extract the payload from a decoded JSON body.

    Args:
        body: Decoded JSON (None for an empty response)
        strategy: Envelope shape expected by the caller
        status_code: HTTP status, copied into any APIError raised

    Returns:
        The payload; None if the body was empty

    Raises:
        APIError: If the envelope reports an error or has the wrong shape
    """
    if isinstance(strategy, str):
        strategy = UnwrapStrategy(strategy)

    if body is None or strategy is UnwrapStrategy.DIRECT:
        return body

    if not isinstance(body, dict):
        raise APIError(
            status_code, "invalid_envelope",
            f"expected a JSON object for {strategy.value} envelope",
            type(body).__name__
        )

    if strategy is UnwrapStrategy.DATA_RESULT:
        data = body.get("data")
        if not isinstance(data, dict) or "result" not in data:
            raise APIError(status_code, "invalid_envelope", "response has no data.result field")
        _raise_envelope_error(data.get("error"), status_code)
        return data["result"]

    if "result" not in body and "error" not in body:
        raise APIError(status_code, "invalid_envelope", "response has no result or error field")
    _raise_envelope_error(body.get("error"), status_code)
    return body.get("result")


def _raise_envelope_error(error: Any, status_code: int):
    """A 2xx response can still carry an application error in the envelope"""
    if not error:
        return

    if isinstance(error, dict):
        code = str(error.get("code") or error.get("error") or "envelope_error")
        message = str(error.get("message") or error.get("error_description") or "request failed")
        details = error.get("details")
        raise APIError(status_code, code, message, str(details) if details else None)

    raise APIError(status_code, "envelope_error", str(error))
