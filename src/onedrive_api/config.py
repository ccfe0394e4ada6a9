"""Configuration management for the OneDrive client.

Loads credentials from .env and service endpoints from config/endpoints.yaml.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from onedrive_api.models.auth import ClientAssertion, ClientSecret, NoCredential

NATIVE_CLIENT_REDIRECT = "https://login.microsoftonline.com/common/oauth2/nativeclient"


class Endpoints(BaseModel):
    """Service base URLs (national clouds use different hosts)."""
    graph_url: str = "https://graph.microsoft.com/v1.0"
    login_url: str = "https://login.microsoftonline.com"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    client_id: str = Field(description="Azure application (client) ID")
    client_secret: str = Field(default="", description="Client secret for confidential clients")
    client_assertion: str = Field(default="", description="Certificate-signed JWT client assertion")
    redirect_uri: str = Field(default=NATIVE_CLIENT_REDIRECT, description="Registered redirect URI")
    refresh_token: str = Field(default="", description="OAuth refresh token from a previous login")
    tenant: str = Field(default="common", description="common, organizations, consumers or a tenant id")
    scope: str = Field(default="offline_access files.readwrite", description="Requested scopes")
    state_dir: str = Field(default="./data", description="Directory for delta links and upload sessions")
    timeout: float = Field(default=60.0, description="HTTP timeout in seconds")
    chunk_size: int = Field(default=10 * 1024 * 1024, description="Upload chunk size in bytes")


class Config(BaseModel):
    """Full application configuration."""
    settings: Settings
    endpoints: Endpoints = Field(default_factory=Endpoints)

    def credential(self) -> NoCredential | ClientSecret | ClientAssertion:
        """The single proof mechanism configured for token requests.

        An assertion wins over a secret when both are set.
        """
        if self.settings.client_assertion:
            return ClientAssertion(assertion=self.settings.client_assertion)
        if self.settings.client_secret:
            return ClientSecret(secret=self.settings.client_secret)
        return NoCredential()


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where config/ lives)."""
    current = Path(__file__).resolve().parent
    for parent in [current, *current.parents]:
        if (parent / "config" / "endpoints.yaml").exists():
            return parent
    # Fallback: cwd
    return Path.cwd()


def _load_endpoints(project_root: Path) -> Endpoints:
    """Load endpoints from endpoints.yaml, or the public-cloud defaults."""
    endpoints_path = project_root / "config" / "endpoints.yaml"
    if not endpoints_path.exists():
        return Endpoints()

    with open(endpoints_path) as f:
        data = yaml.safe_load(f) or {}

    return Endpoints(**data.get("endpoints", {}))


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _load_settings() -> Settings:
    """Load settings from environment variables.

    Supports both ONEDRIVE_* and the bare names used by older .env files.
    """
    return Settings(
        client_id=_env("ONEDRIVE_CLIENT_ID", "CLIENT_ID"),
        client_secret=_env("ONEDRIVE_CLIENT_SECRET", "CLIENT_SECRET"),
        client_assertion=_env("ONEDRIVE_CLIENT_ASSERTION"),
        redirect_uri=_env("ONEDRIVE_REDIRECT_URI", "REDIRECT_URI", default=NATIVE_CLIENT_REDIRECT),
        refresh_token=_env("ONEDRIVE_REFRESH_TOKEN", "REFRESH_TOKEN"),
        tenant=_env("ONEDRIVE_TENANT", default="common"),
        scope=_env("ONEDRIVE_SCOPE", default="offline_access files.readwrite"),
        state_dir=_env("ONEDRIVE_STATE_DIR", default="./data"),
        timeout=float(_env("ONEDRIVE_TIMEOUT", default="60")),
        chunk_size=int(_env("ONEDRIVE_CHUNK_SIZE", default=str(10 * 1024 * 1024))),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache the full application configuration."""
    project_root = _find_project_root()

    # Load .env from project root if it exists
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    settings = _load_settings()
    endpoints = _load_endpoints(project_root)

    return Config(settings=settings, endpoints=endpoints)
