"""Normalization of raw Salt REST API responses.

Every HTTP call made by the client funnels its response through
:func:`normalize_response`, which classifies failures and unwraps the
``{"return": [...]}`` envelope the API puts around successful JSON bodies.
"""

from collections.abc import Callable
from typing import Any

import httpx
import pydantic
import structlog

from .errors import MalformedJson, MalformedResponse, Unauthorized, UnexpectedStatus

logger = structlog.get_logger(__name__)

JSON_MEDIA_TYPE = "application/json"
HTTP_UNAUTHORIZED = 401


def _media_type(response: httpx.Response) -> str:
    content_type = response.headers.get("Content-Type", "")
    return content_type.split(";", 1)[0].strip().lower()


def unwrap_envelope(data: Any, transform: Callable[[Any], Any] | None = None) -> Any:
    """Extract the first element of a decoded ``return`` envelope.

    Args:
        data: Decoded JSON body.
        transform: Optional function applied to the extracted element.

    Returns:
        The first element of ``data["return"]``, transformed if requested.

    Raises:
        MalformedResponse: If ``data`` is not an object holding a non-empty
            list under ``return``, or if ``transform`` rejects the element.
    """
    if not isinstance(data, dict):
        raise MalformedResponse
    ret = data.get("return")
    if not isinstance(ret, list) or not ret:
        raise MalformedResponse

    first = ret[0]
    if transform is None:
        return first
    try:
        return transform(first)
    except pydantic.ValidationError as err:
        logger.warning("Envelope payload failed validation", error_count=err.error_count())
        msg = f"Malformed response from server: {err.error_count()} invalid field(s)"
        raise MalformedResponse(msg) from err


def normalize_response(
    response: httpx.Response,
    transform: Callable[[Any], Any] | None = None,
) -> Any:
    """Classify a response and unwrap its payload.

    Checks are applied in order: 401, any other non-success status, then
    JSON decoding and envelope unwrapping. Successful responses that are not
    JSON are returned unchanged.

    Args:
        response: Response returned by the HTTP client.
        transform: Optional function applied to the unwrapped payload.

    Returns:
        The unwrapped (and transformed) payload, or ``response`` itself for
        non-JSON success bodies.

    Raises:
        Unauthorized: On HTTP 401.
        UnexpectedStatus: On any other non-2xx status.
        MalformedJson: If a JSON body cannot be decoded.
        MalformedResponse: If the decoded body has no usable envelope.
    """
    if response.status_code == HTTP_UNAUTHORIZED:
        raise Unauthorized
    if not response.is_success:
        raise UnexpectedStatus(response.status_code, response.reason_phrase)
    if _media_type(response) != JSON_MEDIA_TYPE:
        logger.debug(
            "Passing through non-JSON response",
            content_type=response.headers.get("Content-Type"),
        )
        return response

    try:
        data = response.json()
    except ValueError as err:
        raise MalformedJson(str(err)) from err
    return unwrap_envelope(data, transform)
