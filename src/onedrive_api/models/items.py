"""Drive item models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ConflictBehavior(str, Enum):
    """What the server does when the target name is already taken."""
    FAIL = "fail"
    REPLACE = "replace"
    RENAME = "rename"


class ItemReference(BaseModel):
    drive_id: str | None = Field(default=None, alias="driveId")
    id: str | None = None
    path: str | None = None

    model_config = {"populate_by_name": True, "extra": "allow"}


class DriveItem(BaseModel):
    """A file or folder as returned by the API.

    Only the fields this package reads are declared; everything else the
    server sends is kept as extra data.
    """
    id: str | None = None
    name: str | None = None
    size: int | None = None
    e_tag: str | None = Field(default=None, alias="eTag")
    folder: dict[str, Any] | None = None
    file: dict[str, Any] | None = None
    deleted: dict[str, Any] | None = None
    parent_reference: ItemReference | None = Field(default=None, alias="parentReference")
    last_modified_date_time: str | None = Field(default=None, alias="lastModifiedDateTime")

    model_config = {"populate_by_name": True, "extra": "allow"}

    @property
    def is_folder(self) -> bool:
        return self.folder is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted is not None
