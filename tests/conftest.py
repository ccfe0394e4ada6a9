"""Shared fixtures for the onedrive-api test suite."""
from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from onedrive_api.config import Config, Endpoints, Settings


@pytest.fixture
def fake_settings() -> Settings:
    return Settings(
        client_id="test-client-id",
        redirect_uri="https://localhost/callback",
        refresh_token="test-refresh-token",
        scope="offline_access files.readwrite",
        state_dir="./test-data",
    )


@pytest.fixture
def fake_config(fake_settings) -> Config:
    return Config(settings=fake_settings, endpoints=Endpoints())


@pytest.fixture
def mock_client():
    """MagicMock standing in for GraphClient."""
    client = MagicMock()
    client.url.side_effect = lambda path: (
        path if path.startswith("https://") else f"https://graph.microsoft.com/v1.0/{path}"
    )
    client.get = MagicMock()
    client.post = MagicMock()
    client.put = MagicMock()
    client.delete = MagicMock()
    client.close = MagicMock()
    return client


@pytest.fixture
def make_response():
    """Factory for real httpx responses."""

    def _make(status: int = 200, json=None, headers: dict[str, str] | None = None, content: bytes | None = None):
        if json is not None:
            return httpx.Response(status, json=json, headers=headers)
        return httpx.Response(status, content=content or b"", headers=headers)

    return _make
