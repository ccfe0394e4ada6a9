"""Auth-related data models."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

JWT_BEARER_ASSERTION = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class TokenResponse(BaseModel):
    """Response from the Microsoft identity platform token endpoint."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    scope: str = ""
    refresh_token: str | None = None

    model_config = {"frozen": True, "extra": "ignore"}


class TokenStatus(BaseModel):
    """Current state of the cached access token."""
    has_token: bool
    is_expired: bool
    expires_at: datetime | None = None
    seconds_remaining: int | None = None
    scope: str | None = None


# ── Client credentials ────────────────────────────────────────────────
# Exactly one proof mechanism accompanies a token request.

class NoCredential(BaseModel):
    """Public client: no secret, no assertion."""
    kind: Literal["none"] = "none"

    model_config = {"frozen": True}

    def form_fields(self) -> dict[str, str]:
        return {}


class ClientSecret(BaseModel):
    """Confidential client proving itself with a shared secret."""
    kind: Literal["secret"] = "secret"
    secret: str

    model_config = {"frozen": True}

    def form_fields(self) -> dict[str, str]:
        return {"client_secret": self.secret}


class ClientAssertion(BaseModel):
    """Confidential client proving itself with a certificate-signed JWT."""
    kind: Literal["assertion"] = "assertion"
    assertion: str

    model_config = {"frozen": True}

    def form_fields(self) -> dict[str, str]:
        return {
            "client_assertion_type": JWT_BEARER_ASSERTION,
            "client_assertion": self.assertion,
        }


ClientCredential = Annotated[
    Union[NoCredential, ClientSecret, ClientAssertion],
    Field(discriminator="kind"),
]


# ── Scopes and tenants ────────────────────────────────────────────────

class Permission(BaseModel):
    """Microsoft Graph file permissions the user is asked to consent to.

    Reading is always included.
    """
    write: bool = False
    access_shared: bool = False
    offline_access: bool = False

    def to_scope(self) -> str:
        scope = "files.readwrite" if self.write else "files.read"
        if self.access_shared:
            scope += ".all"
        if self.offline_access:
            scope = "offline_access " + scope
        return scope


class Tenant(BaseModel):
    """Which accounts may sign in: ``common``, ``organizations``, ``consumers`` or a tenant id."""
    value: str = "common"

    model_config = {"frozen": True}

    @classmethod
    def common(cls) -> Tenant:
        return cls(value="common")

    @classmethod
    def organizations(cls) -> Tenant:
        return cls(value="organizations")

    @classmethod
    def consumers(cls) -> Tenant:
        return cls(value="consumers")

    @classmethod
    def issuer(cls, tenant_id: str) -> Tenant:
        if not tenant_id:
            raise ValueError("Tenant id must not be empty")
        return cls(value=tenant_id)

    def __str__(self) -> str:
        return self.value
