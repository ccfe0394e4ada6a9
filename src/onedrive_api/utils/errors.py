"""Structured error handling for agent-friendly output."""

from __future__ import annotations

import json
import sys

from rich.console import Console

from onedrive_api.errors import (
    HttpApiError,
    OAuthError,
    ProtocolViolation,
    RateLimited,
    ResyncRequired,
    SessionExpired,
    TransportFailure,
    UnexpectedResponse,
)

console = Console(stderr=True)

_REFRESH_HINT = "Token may be expired or revoked. Run `onedrive-api auth login` again"

# Actionable hints keyed by error code
_ERROR_HINTS: dict[str, str] = {
    "AUTH_ERROR": _REFRESH_HINT,
    "RATE_LIMITED": "Throttled by the service. Wait for the retry hint before sending more requests",
    "SESSION_EXPIRED": "Upload session is gone. Run `onedrive-api upload put` again to start a new one",
    "RESYNC_REQUIRED": "Delta link is no longer valid. Run `onedrive-api items delta --full`",
    "PROTOCOL_VIOLATION": "Nothing was sent. Check the arguments against the session state",
    "TIMEOUT": "Request timed out. Try again or raise ONEDRIVE_TIMEOUT",
    "CONNECTION_ERROR": "Connection error. Check network connectivity",
    "NOT_FOUND": "The item does not exist. Verify the path or ID",
}


def error_code(error: Exception) -> str:
    """Map an exception to a stable machine-readable code."""
    if isinstance(error, OAuthError):
        return "AUTH_ERROR"
    if isinstance(error, RateLimited):
        return "RATE_LIMITED"
    if isinstance(error, SessionExpired):
        return "SESSION_EXPIRED"
    if isinstance(error, ProtocolViolation):
        return "PROTOCOL_VIOLATION"
    if isinstance(error, TransportFailure):
        return "TIMEOUT" if error.timeout else "CONNECTION_ERROR"
    if isinstance(error, ResyncRequired):
        return "RESYNC_REQUIRED"
    if isinstance(error, HttpApiError):
        if error.status in (401, 403):
            return "AUTH_ERROR"
        if error.status == 404:
            return "NOT_FOUND"
        return "API_ERROR"
    if isinstance(error, UnexpectedResponse):
        return "API_ERROR"
    return "RUNTIME_ERROR"


def handle_error(error: Exception) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout for agent consumption:
    {"error": true, "code": "RATE_LIMITED", "message": "...", "hint": "..."}

    Rate limits also carry ``retry_after`` in seconds when the server sent one.
    """
    message = str(error)
    code = error_code(error)
    hint = _ERROR_HINTS.get(code)

    error_obj: dict[str, object] = {
        "error": True,
        "code": code,
        "message": message,
    }
    if isinstance(error, (HttpApiError, OAuthError, RateLimited)):
        error_obj["status"] = error.status
    if isinstance(error, RateLimited) and error.retry_hint is not None:
        error_obj["retry_after"] = int(error.retry_hint.after.total_seconds())
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
