"""Error taxonomy for the OneDrive client.

Every failure is raised as one of these types and never retried or
swallowed inside the library. Callers branch on the type:

* ``SessionExpired``: create a new upload session.
* ``RateLimited``: back off, honoring ``retry_hint`` when present.
* ``OAuthError`` / ``HttpApiError`` with a 4xx status: give up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from onedrive_api.models.errors import ErrorResponse, OAuth2ErrorResponse, RetryHint
    from onedrive_api.models.upload import UploadSession


class OneDriveError(Exception):
    """Base class for all errors raised by this package."""

    # Set when a freshly created upload session had to be given up.
    session: UploadSession | None = None


class TransportFailure(OneDriveError):
    """The request never produced an HTTP response (DNS, TLS, connect, timeout)."""

    def __init__(self, message: str, *, timeout: bool = False) -> None:
        super().__init__(message)
        self.timeout = timeout


class HttpApiError(OneDriveError):
    """Non-2xx response from the resource API."""

    def __init__(
        self,
        status: int,
        code: str | None = None,
        message: str | None = None,
        error: ErrorResponse | None = None,
    ) -> None:
        self.status = status
        self.code = code
        self.message = message
        self.error = error
        detail = f"{code}: {message}" if code else (message or "no error body")
        super().__init__(f"API error (HTTP {status}): {detail}")


class ResyncRequired(HttpApiError):
    """The delta cursor is no longer valid; track changes again from scratch."""


class OAuthError(OneDriveError):
    """Error envelope returned by the OAuth2 token endpoint."""

    def __init__(
        self,
        status: int,
        error: str,
        description: str | None = None,
        response: OAuth2ErrorResponse | None = None,
    ) -> None:
        self.status = status
        self.error = error
        self.description = description
        self.response = response
        super().__init__(
            f"OAuth error (HTTP {status}): {error}"
            + (f" - {description}" if description else "")
        )


class RateLimited(OneDriveError):
    """429/503 with a ``Retry-After`` header."""

    def __init__(
        self,
        status: int,
        retry_hint: RetryHint | None,
        error: ErrorResponse | None = None,
    ) -> None:
        self.status = status
        self.retry_hint = retry_hint
        self.error = error
        wait = (
            f"retry after {retry_hint.after.total_seconds():.0f}s"
            if retry_hint is not None
            else "retry later"
        )
        super().__init__(f"Rate limited (HTTP {status}): {wait}")


class SessionExpired(OneDriveError):
    """The upload session is past its expiration or gone from the server.

    ``status`` is ``None`` when the expiry was detected locally, before any
    request was made.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SessionNotFound(SessionExpired):
    """The server no longer knows the upload URL (HTTP 404)."""


class ProtocolViolation(OneDriveError, ValueError):
    """A caller contract error detected locally; no request was sent."""


class UnexpectedResponse(OneDriveError):
    """A successful status whose body cannot be used."""
