"""Local persistence of resumption points: delta links and upload sessions."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field


class SessionRecord(BaseModel):
    """An upload in progress, enough to resume it after a restart."""
    local_path: str
    upload_url: str
    file_size: int
    remote_dir: str
    file_name: str
    created_at: str = ""


class StateFile(BaseModel):
    delta_links: dict[str, str] = Field(default_factory=dict)
    sessions: dict[str, SessionRecord] = Field(default_factory=dict)


class StateStore:
    """JSON-backed store at ``{state_dir}/state.json``.

    Delta links are keyed by drive and folder, upload sessions by the
    absolute path of the local file being uploaded.
    """

    def __init__(self, state_dir: str = "./data") -> None:
        self._dir = Path(state_dir)
        self._file = self._dir / "state.json"

    # ── persistence ───────────────────────────────────────────────────

    def load(self) -> StateFile:
        if not self._file.exists():
            return StateFile()
        with open(self._file) as f:
            return StateFile.model_validate(json.load(f))

    def save(self, state: StateFile) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        with open(self._file, "w") as f:
            json.dump(state.model_dump(), f, indent=2, default=str)

    # ── delta links ───────────────────────────────────────────────────

    @staticmethod
    def delta_key(drive: str, folder: str) -> str:
        return f"{drive}|{folder}"

    def get_delta_link(self, drive: str, folder: str) -> str | None:
        return self.load().delta_links.get(self.delta_key(drive, folder))

    def set_delta_link(self, drive: str, folder: str, delta_link: str) -> None:
        state = self.load()
        state.delta_links[self.delta_key(drive, folder)] = delta_link
        self.save(state)

    def clear_delta_link(self, drive: str, folder: str) -> bool:
        """Forget a stored delta link. Returns whether one was stored."""
        state = self.load()
        removed = state.delta_links.pop(self.delta_key(drive, folder), None)
        if removed is not None:
            self.save(state)
        return removed is not None

    # ── upload sessions ───────────────────────────────────────────────

    def get_session(self, local_path: str | Path) -> SessionRecord | None:
        return self.load().sessions.get(_path_key(local_path))

    def put_session(self, record: SessionRecord) -> None:
        if not record.created_at:
            record.created_at = datetime.now().isoformat(timespec="seconds")
        record.local_path = _path_key(record.local_path)
        state = self.load()
        state.sessions[record.local_path] = record
        self.save(state)

    def remove_session(self, local_path: str | Path) -> SessionRecord | None:
        """Forget the session for ``local_path``, returning it if there was one."""
        state = self.load()
        removed = state.sessions.pop(_path_key(local_path), None)
        if removed is not None:
            self.save(state)
        return removed

    def list_sessions(self) -> list[SessionRecord]:
        return list(self.load().sessions.values())


def _path_key(local_path: str | Path) -> str:
    return str(Path(local_path).resolve())
