"""HTTP transport for Microsoft Graph.

Handles URL resolution, bearer-token injection and turning connection-level
failures into ``TransportFailure``. It sends exactly one request per call:
retry and backoff policy belongs to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Union

import httpx

from onedrive_api.utils.classify import classify_transport_error

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.microsoft.com/v1.0"

TokenSource = Union[str, Callable[[], str]]


class GraphClient:
    """Single-shot HTTP client for Graph and capability URLs."""

    def __init__(
        self,
        token: TokenSource | None = None,
        *,
        base_url: str = GRAPH_URL,
        timeout: float = 60.0,
        verbose: bool = False,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._verbose = verbose
        self._http = httpx.Client(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    def url(self, path: str) -> str:
        """Resolve a Graph path; absolute URLs (next links, upload URLs) pass through."""
        if path.startswith(("https://", "http://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        json: Any = None,
        data: dict[str, str] | None = None,
        content: bytes | None = None,
        params: dict[str, str] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request and return the raw response, whatever its status.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE).
            path: Graph path (``me/drive/root/children``) or absolute URL.
            authenticated: Attach the bearer token. Upload URLs are
                pre-authorized and must be called without it.
            json: JSON request body.
            data: Form-encoded request body.
            content: Raw request body.
            params: Query parameters.
            extra_headers: Additional headers to include.

        Raises:
            TransportFailure: If no HTTP response was received.
        """
        url = self.url(path)
        headers = self._build_headers(authenticated, extra_headers)

        if self._verbose:
            logger.info(f"{method} {url}")
            if json is not None:
                logger.info(f"Body: {json}")

        try:
            response = self._http.request(
                method=method,
                url=url,
                headers=headers,
                json=json,
                data=data,
                content=content,
                params=params,
            )
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise classify_transport_error(e) from e

        if self._verbose:
            logger.info(f"Response: {response.status_code}")

        return response

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for GET requests."""
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for POST requests."""
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for PUT requests."""
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for DELETE requests."""
        return self.request("DELETE", path, **kwargs)

    def _build_headers(
        self,
        authenticated: bool,
        extra_headers: dict[str, str] | None = None,
    ) -> dict[str, str]:
        headers: dict[str, str] = {}
        if authenticated:
            headers["Authorization"] = f"Bearer {self._access_token()}"
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _access_token(self) -> str:
        if self._token is None:
            raise ValueError("No access token configured for an authenticated request")
        if callable(self._token):
            return self._token()
        return self._token

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()
