"""Error envelopes and retry hints."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """``{"error": {...}}`` body of the resource API."""
    code: str = ""
    message: str = ""
    inner_error: dict[str, Any] | None = Field(default=None, alias="innerError")

    model_config = {"populate_by_name": True, "extra": "allow"}


class OAuth2ErrorResponse(BaseModel):
    """Error body of the token endpoint."""
    error: str
    error_description: str | None = None
    error_codes: list[int] | None = None
    timestamp: str | None = None
    trace_id: str | None = None
    correlation_id: str | None = None

    model_config = {"extra": "allow"}


class RetryHint(BaseModel):
    """How long the server asked us to wait."""
    after: timedelta

    model_config = {"frozen": True}
