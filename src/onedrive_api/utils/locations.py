"""Drive and item addressing.

Both render to Graph URL path fragments, e.g. ``me/drive`` and
``root:/Documents/report.pdf:``.
"""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel

INVALID_NAME_CHARS = '"*:<>?/\\|'


def is_valid_file_name(name: str) -> bool:
    return bool(name) and not any(c in INVALID_NAME_CHARS for c in name)


def _seg(value: str) -> str:
    return quote(value, safe="")


class DriveLocation(BaseModel):
    """Which drive to talk to."""
    path: str

    model_config = {"frozen": True}

    @classmethod
    def me(cls) -> DriveLocation:
        return cls(path="me/drive")

    @classmethod
    def from_user(cls, id_or_principal_name: str) -> DriveLocation:
        return cls(path=f"users/{_seg(id_or_principal_name)}/drive")

    @classmethod
    def from_group(cls, group_id: str) -> DriveLocation:
        return cls(path=f"groups/{_seg(group_id)}/drive")

    @classmethod
    def from_site(cls, site_id: str) -> DriveLocation:
        return cls(path=f"sites/{_seg(site_id)}/drive")

    @classmethod
    def from_id(cls, drive_id: str) -> DriveLocation:
        return cls(path=f"drives/{_seg(drive_id)}")


class ItemLocation(BaseModel):
    """An item inside a drive, addressed by path or by id."""
    item_path: str | None = None
    item_id: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def root(cls) -> ItemLocation:
        return cls(item_path="/")

    @classmethod
    def from_path(cls, path: str) -> ItemLocation:
        """A ``/``-started absolute path; the trailing ``/`` is optional.

        Raises:
            ValueError: If the path is relative or a component is not a valid name.
        """
        if path == "/":
            return cls.root()
        if not path.startswith("/"):
            raise ValueError(f"Item path must be absolute: {path!r}")
        components = path[1:].rstrip("/").split("/")
        bad = [c for c in components if not is_valid_file_name(c)]
        if bad:
            raise ValueError(f"Invalid path component(s) in {path!r}: {bad}")
        return cls(item_path="/" + "/".join(components))

    @classmethod
    def from_id(cls, item_id: str) -> ItemLocation:
        return cls(item_id=item_id)

    def to_api_path(self) -> str:
        if self.item_id is not None:
            return f"items/{_seg(self.item_id)}"
        if self.item_path in (None, "/"):
            return "root"
        return f"root:{quote(self.item_path)}:"

    def child_api_path(self, name: str) -> str:
        """Path fragment for the child ``name`` of this folder."""
        if not is_valid_file_name(name):
            raise ValueError(f"Invalid file name: {name!r}")
        if self.item_id is not None:
            return f"items/{_seg(self.item_id)}:/{_seg(name)}:"
        parent = "" if self.item_path in (None, "/") else self.item_path
        return f"root:{quote(parent + '/' + name)}:"
