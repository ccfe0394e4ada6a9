"""Upload session data models.

Byte ranges are half-open ``[start, end)`` in Python. The server speaks
inclusive ranges (``"0-511"``) and open-ended ranges (``"512-"``); both are
converted on the way in and out.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from onedrive_api.models.items import DriveItem


class ByteRange(BaseModel):
    """Half-open byte interval; ``end=None`` runs to the end of the file."""
    start: int = Field(ge=0)
    end: int | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_order(self) -> ByteRange:
        if self.end is not None and self.end < self.start:
            raise ValueError(f"Range end {self.end} is before start {self.start}")
        return self

    @classmethod
    def parse(cls, value: str) -> ByteRange:
        """Parse a server range string such as ``"0-511"`` or ``"512-"``."""
        start_s, sep, end_s = value.strip().partition("-")
        if not sep or not start_s:
            raise ValueError(f"Malformed byte range: {value!r}")
        start = int(start_s)
        end = int(end_s) + 1 if end_s else None
        return cls(start=start, end=end)

    def resolve(self, file_size: int) -> ByteRange:
        """Close an open-ended range against ``file_size``."""
        end = file_size if self.end is None else min(self.end, file_size)
        return ByteRange(start=min(self.start, end), end=end)

    def __len__(self) -> int:
        if self.end is None:
            raise TypeError("Open-ended range has no length; resolve() it first")
        return self.end - self.start

    def contains(self, other: ByteRange) -> bool:
        if other.start < self.start:
            return False
        if self.end is None:
            return True
        return other.end is not None and other.end <= self.end

    def content_range(self, file_size: int) -> str:
        """``Content-Range`` header value for this (closed) range."""
        if self.end is None:
            raise ValueError("Cannot build Content-Range for an open-ended range")
        return f"bytes {self.start}-{self.end - 1}/{file_size}"

    def __str__(self) -> str:
        return f"{self.start}-" if self.end is None else f"{self.start}-{self.end - 1}"


def normalize_ranges(ranges: list[ByteRange]) -> list[ByteRange]:
    """Sort ascending and merge overlapping or touching ranges."""
    merged: list[ByteRange] = []
    for r in sorted(ranges, key=lambda r: r.start):
        if r.end is not None and r.end == r.start:
            continue
        if merged:
            last = merged[-1]
            if last.end is None:
                break
            if r.start <= last.end:
                end = None if r.end is None else max(last.end, r.end)
                merged[-1] = ByteRange(start=last.start, end=end)
                continue
        merged.append(r)
    return merged


class SessionState(str, Enum):
    CREATED = "created"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABORTED = "aborted"


class UploadSessionMeta(BaseModel):
    """What the server tells us about an upload session."""
    upload_url: str | None = Field(default=None, alias="uploadUrl")
    expiration_date_time: datetime | None = Field(default=None, alias="expirationDateTime")
    next_expected_ranges: list[ByteRange] = Field(
        default_factory=list, alias="nextExpectedRanges"
    )

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("next_expected_ranges", mode="before")
    @classmethod
    def _parse_ranges(cls, value: Any) -> Any:
        if value is None:
            return []
        return [ByteRange.parse(v) if isinstance(v, str) else v for v in value]

    @field_validator("next_expected_ranges", mode="after")
    @classmethod
    def _normalize(cls, value: list[ByteRange]) -> list[ByteRange]:
        return normalize_ranges(value)


class UploadSession(BaseModel):
    """An upload session bound to the size the caller intends to upload.

    Plain data: it can be dumped to JSON, stored, and resumed in another
    process with :meth:`UploadService.resume`.
    """
    meta: UploadSessionMeta
    file_size: int = Field(ge=0)
    state: SessionState = SessionState.CREATED
    item: DriveItem | None = None

    @property
    def upload_url(self) -> str:
        if not self.meta.upload_url:
            raise ValueError("Upload session has no upload URL")
        return self.meta.upload_url

    @property
    def expiration_date_time(self) -> datetime | None:
        return self.meta.expiration_date_time

    def is_expired(self, now: datetime | None = None) -> bool:
        expires = self.meta.expiration_date_time
        if expires is None:
            return False
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return now >= expires

    def expected_ranges(self) -> list[ByteRange]:
        """Remaining ranges, closed against ``file_size``."""
        resolved = [r.resolve(self.file_size) for r in self.meta.next_expected_ranges]
        return [r for r in resolved if len(r) > 0]

    def accepts(self, byte_range: ByteRange) -> bool:
        return any(r.contains(byte_range) for r in self.expected_ranges())

    @property
    def bytes_remaining(self) -> int:
        return sum(len(r) for r in self.expected_ranges())


class UploadAccepted(BaseModel):
    """The chunk was stored; more bytes are expected."""
    next_expected_ranges: list[ByteRange]


class UploadCompleted(BaseModel):
    """The final chunk was stored and the item created."""
    item: DriveItem
