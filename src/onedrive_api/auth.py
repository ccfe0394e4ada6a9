"""OAuth2 authentication against the Microsoft identity platform.

``AuthFlow`` performs the individual token exchanges and never stores
anything. ``AuthManager`` sits on top of it for callers that want an
in-memory access-token cache with refresh on expiry.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import httpx
from pydantic import ValidationError

from onedrive_api.config import Config
from onedrive_api.errors import UnexpectedResponse
from onedrive_api.models.auth import (
    ClientCredential,
    NoCredential,
    Permission,
    Tenant,
    TokenResponse,
    TokenStatus,
)
from onedrive_api.utils.classify import ApiKind, classify_response, classify_transport_error

LOGIN_URL = "https://login.microsoftonline.com"
APP_ONLY_SCOPE = "https://graph.microsoft.com/.default"

# Buffer before expiry to trigger refresh
EXPIRY_BUFFER = timedelta(minutes=5)


def _scope_string(scope: str | Permission) -> str:
    if isinstance(scope, Permission):
        return scope.to_scope()
    return scope.strip()


def _check_redirect_uri(redirect_uri: str) -> None:
    try:
        url = httpx.URL(redirect_uri)
    except httpx.InvalidURL as e:
        raise ValueError(f"Invalid redirect_uri {redirect_uri!r}: {e}") from e
    if not url.scheme or not url.host:
        raise ValueError(f"redirect_uri must be an absolute URL, got {redirect_uri!r}")


def build_authorize_url(
    client_id: str,
    redirect_uri: str,
    scope: str | Permission,
    tenant: Tenant | str = "common",
    response_type: str = "code",
    login_url: str = LOGIN_URL,
) -> str:
    """Build the browser URL that starts an authorization flow.

    Pure construction, no network.

    Raises:
        ValueError: If ``scope`` is empty or ``redirect_uri`` is not absolute.
    """
    scope_str = _scope_string(scope)
    if not scope_str:
        raise ValueError("scope must not be empty")
    _check_redirect_uri(redirect_uri)

    url = httpx.URL(
        f"{login_url.rstrip('/')}/{tenant}/oauth2/v2.0/authorize",
        params={
            "client_id": client_id,
            "scope": scope_str,
            "redirect_uri": redirect_uri,
            "response_type": response_type,
        },
    )
    return str(url)


class AuthFlow:
    """Token exchanges for one registered application.

    Every exchange is one POST to the tenant's token endpoint and returns a
    fresh ``TokenResponse``. Persisting tokens is up to the caller.
    """

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        *,
        scope: str | Permission = "",
        tenant: Tenant | str = "common",
        login_url: str = LOGIN_URL,
        timeout: float = 30.0,
    ) -> None:
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._scope = _scope_string(scope)
        self._tenant = str(tenant)
        self._login_url = login_url.rstrip("/")
        self._http = httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls, config: Config) -> AuthFlow:
        return cls(
            config.settings.client_id,
            config.settings.redirect_uri,
            scope=config.settings.scope,
            tenant=config.settings.tenant,
            login_url=config.endpoints.login_url,
            timeout=config.settings.timeout,
        )

    @property
    def token_endpoint(self) -> str:
        return f"{self._login_url}/{self._tenant}/oauth2/v2.0/token"

    @property
    def scope(self) -> str:
        return self._scope

    def code_auth_url(self) -> str:
        """Browser URL for the authorization-code flow."""
        return self._authorize_url("code")

    def token_auth_url(self) -> str:
        """Browser URL for the implicit (token) flow."""
        return self._authorize_url("token")

    def _authorize_url(self, response_type: str) -> str:
        return build_authorize_url(
            self._client_id,
            self._redirect_uri,
            self._scope,
            self._tenant,
            response_type=response_type,
            login_url=self._login_url,
        )

    def exchange_code(
        self,
        code: str,
        credential: ClientCredential = NoCredential(),
    ) -> TokenResponse:
        """Redeem an authorization code.

        A refresh token is required in the answer when ``offline_access``
        was requested.
        """
        form = {
            "client_id": self._client_id,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._redirect_uri,
            **credential.form_fields(),
        }
        return self._request_token(
            form, require_refresh_token="offline_access" in self._scope.split()
        )

    def exchange_refresh_token(
        self,
        refresh_token: str,
        credential: ClientCredential = NoCredential(),
    ) -> TokenResponse:
        """Trade a refresh token for a new access token (and a rotated refresh token)."""
        form = {
            "client_id": self._client_id,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            **credential.form_fields(),
        }
        return self._request_token(form, require_refresh_token=True)

    def exchange_client_credentials(
        self,
        credential: ClientCredential,
        scope: str = APP_ONLY_SCOPE,
    ) -> TokenResponse:
        """App-only token for a confidential client."""
        if isinstance(credential, NoCredential):
            raise ValueError("The client credentials grant needs a secret or an assertion")
        form = {
            "client_id": self._client_id,
            "grant_type": "client_credentials",
            "scope": scope,
            **credential.form_fields(),
        }
        return self._request_token(form)

    def _request_token(
        self,
        form: dict[str, str],
        require_refresh_token: bool = False,
    ) -> TokenResponse:
        try:
            response = self._http.post(self.token_endpoint, data=form)
        except httpx.HTTPError as e:
            raise classify_transport_error(e) from e

        payload = classify_response(response, ApiKind.OAUTH)
        if payload is None:
            raise UnexpectedResponse("Empty token response")
        try:
            token = TokenResponse.model_validate(payload)
        except ValidationError as e:
            raise UnexpectedResponse(f"Malformed token response: {e}") from e

        if require_refresh_token and not token.refresh_token:
            raise UnexpectedResponse("Missing field `refresh_token` in token response")
        return token

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()


class AuthManager:
    """Caches an access token and refreshes it from a refresh token."""

    def __init__(self, config: Config, flow: AuthFlow | None = None) -> None:
        self._config = config
        self._flow = flow or AuthFlow.from_config(config)
        self._refresh_token: str | None = config.settings.refresh_token or None
        self._access_token: str | None = None
        self._token_expiry: datetime | None = None
        self._scope: str | None = None

    @property
    def flow(self) -> AuthFlow:
        return self._flow

    @property
    def refresh_token(self) -> str | None:
        """The latest refresh token; the server rotates it on every refresh."""
        return self._refresh_token

    def get_access_token(self, force_refresh: bool = False) -> str:
        """Get a valid access token, refreshing if needed.

        Args:
            force_refresh: Force a token refresh even if current token is valid.

        Returns:
            A valid access token string.
        """
        if not force_refresh and self._is_token_valid():
            return self._access_token  # type: ignore[return-value]

        self._refresh()
        return self._access_token  # type: ignore[return-value]

    def login_with_code(self, code: str) -> TokenResponse:
        """Redeem an authorization code and cache the resulting tokens."""
        token = self._flow.exchange_code(code, self._config.credential())
        self._store(token)
        return token

    def get_status(self) -> TokenStatus:
        """Get the current token status."""
        if not self._access_token:
            return TokenStatus(has_token=False, is_expired=True)

        now = datetime.now()
        is_expired = self._token_expiry is None or now > self._token_expiry
        seconds_remaining = None
        if self._token_expiry and not is_expired:
            seconds_remaining = int((self._token_expiry - now).total_seconds())

        return TokenStatus(
            has_token=True,
            is_expired=is_expired,
            expires_at=self._token_expiry,
            seconds_remaining=seconds_remaining,
            scope=self._scope,
        )

    def _is_token_valid(self) -> bool:
        """Check if the current token is valid with a safety buffer."""
        if not self._access_token or not self._token_expiry:
            return False
        return datetime.now() + EXPIRY_BUFFER < self._token_expiry

    def _refresh(self) -> None:
        if not self._refresh_token:
            raise ValueError(
                "No refresh token configured. Run `onedrive-api auth login` "
                "and set ONEDRIVE_REFRESH_TOKEN in your .env file."
            )
        token = self._flow.exchange_refresh_token(
            self._refresh_token, self._config.credential()
        )
        self._store(token)

    def _store(self, token: TokenResponse) -> None:
        self._access_token = token.access_token
        self._token_expiry = datetime.now() + timedelta(seconds=token.expires_in)
        self._scope = token.scope or None
        if token.refresh_token:
            self._refresh_token = token.refresh_token

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._flow.close()
