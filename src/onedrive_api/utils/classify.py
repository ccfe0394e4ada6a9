"""Turn raw HTTP responses into payloads or typed errors.

The resource API and the token endpoint wrap errors in different JSON
envelopes, so callers say which one they talked to.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from onedrive_api.errors import (
    HttpApiError,
    OAuthError,
    RateLimited,
    ResyncRequired,
    TransportFailure,
    UnexpectedResponse,
)
from onedrive_api.models.errors import ErrorResponse, OAuth2ErrorResponse, RetryHint

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUSES = frozenset({429, 503})


class ApiKind(str, Enum):
    RESOURCE = "resource"
    OAUTH = "oauth"


def parse_retry_after(value: str, now: datetime | None = None) -> RetryHint | None:
    """Parse a ``Retry-After`` header value.

    Accepts delta-seconds (``"120"``) or an HTTP-date. Dates are turned into
    a duration relative to ``now``; dates in the past give a zero wait.
    Returns None when the value is neither.
    """
    value = value.strip()
    if value.isascii() and value.isdigit():
        try:
            return RetryHint(after=timedelta(seconds=int(value)))
        except OverflowError:
            return None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    return RetryHint(after=max(when - now, timedelta(0)))


def classify_transport_error(error: httpx.HTTPError) -> TransportFailure:
    """Wrap a failure that never produced an HTTP response."""
    timeout = isinstance(error, httpx.TimeoutException)
    kind = "timed out" if timeout else "failed"
    return TransportFailure(f"Request {kind}: {error}", timeout=timeout)


def classify_response(
    response: httpx.Response,
    api: ApiKind = ApiKind.RESOURCE,
) -> dict[str, Any] | None:
    """Return the decoded body of a successful response or raise a typed error.

    Returns:
        The JSON object, or None for an empty body.

    Raises:
        RateLimited: 429/503 carrying ``Retry-After``, whatever the body says.
        OAuthError: token endpoint error envelope.
        ResyncRequired: 410 asking for a full delta resync.
        HttpApiError: any other non-2xx status.
        UnexpectedResponse: 2xx whose body is not JSON.
    """
    status = response.status_code

    if 200 <= status < 300:
        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UnexpectedResponse(f"Invalid JSON in HTTP {status} response: {e}") from e

    body = _json_or_none(response)

    retry_after = response.headers.get("Retry-After")
    if status in RATE_LIMIT_STATUSES and retry_after is not None:
        hint = parse_retry_after(retry_after)
        if hint is None:
            logger.warning(f"Unparseable Retry-After header: {retry_after!r}")
        raise RateLimited(status, hint, _resource_error(body))

    if api == ApiKind.OAUTH:
        oauth_error = _oauth_error(body)
        if oauth_error is not None:
            raise OAuthError(
                status,
                oauth_error.error,
                oauth_error.error_description,
                response=oauth_error,
            )

    error = _resource_error(body)
    if error is None:
        raise HttpApiError(status, message=response.reason_phrase or None)

    error_cls = HttpApiError
    if status == 410 and error.code.lower().startswith("resync"):
        error_cls = ResyncRequired
    raise error_cls(status, error.code, error.message, error)


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _resource_error(body: Any) -> ErrorResponse | None:
    if not isinstance(body, dict) or not isinstance(body.get("error"), dict):
        return None
    try:
        return ErrorResponse.model_validate(body["error"])
    except ValidationError:
        return None


def _oauth_error(body: Any) -> OAuth2ErrorResponse | None:
    if not isinstance(body, dict) or not isinstance(body.get("error"), str):
        return None
    try:
        return OAuth2ErrorResponse.model_validate(body)
    except ValidationError:
        return None
