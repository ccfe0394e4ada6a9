"""Resumable upload sessions.

A session moves through ``created -> uploading -> completed`` (or
``aborted`` when deleted). Expiry is checked lazily before every call.
The server is the authority on which ranges are still missing: the
session's ranges are replaced from each accepted response and left alone
when a request fails.
"""

from __future__ import annotations

import io
import logging
from typing import BinaryIO, Callable

import httpx
from pydantic import ValidationError

from onedrive_api.client import GraphClient
from onedrive_api.errors import (
    HttpApiError,
    OneDriveError,
    ProtocolViolation,
    SessionExpired,
    SessionNotFound,
    UnexpectedResponse,
)
from onedrive_api.models.items import ConflictBehavior, DriveItem
from onedrive_api.models.upload import (
    ByteRange,
    SessionState,
    UploadAccepted,
    UploadCompleted,
    UploadSession,
    UploadSessionMeta,
)
from onedrive_api.utils.chunking import plan_chunks
from onedrive_api.utils.classify import classify_response
from onedrive_api.utils.locations import DriveLocation, ItemLocation

logger = logging.getLogger(__name__)


class UploadService:
    """Create, feed, inspect and cancel upload sessions."""

    def __init__(self, client: GraphClient, drive: DriveLocation | None = None) -> None:
        self._client = client
        self._drive = drive or DriveLocation.me()

    # ── Session lifecycle ─────────────────────────────────────────────

    def create_session(
        self,
        parent: ItemLocation,
        file_name: str,
        file_size: int,
        conflict_behavior: ConflictBehavior = ConflictBehavior.FAIL,
        initial_fragment: bytes | None = None,
    ) -> UploadSession:
        """Open an upload session for ``file_name`` inside ``parent``.

        Args:
            parent: Folder that will contain the file.
            file_name: Name of the file to create.
            file_size: Total size the caller is going to upload.
            conflict_behavior: What to do if the name is taken.
            initial_fragment: Optional first bytes, uploaded right after
                the session is created. If that upload fails the session
                is deleted and attached to the raised error as ``session``.

        Returns:
            The new session. If ``initial_fragment`` was the whole file the
            session is already ``completed`` and carries the created item.
        """
        if file_size <= 0:
            raise ProtocolViolation(
                f"file_size must be positive, got {file_size}; upload sessions cannot create empty files"
            )
        if initial_fragment is not None and len(initial_fragment) > file_size:
            raise ProtocolViolation(
                f"Initial fragment ({len(initial_fragment)} B) is larger than the file ({file_size} B)"
            )

        path = f"{self._drive.path}/{parent.child_api_path(file_name)}/createUploadSession"
        body = {
            "item": {
                "@microsoft.graph.conflictBehavior": ConflictBehavior(conflict_behavior).value,
                "name": file_name,
            }
        }
        payload = classify_response(self._client.post(path, json=body))
        meta = _parse_meta(payload)
        if not meta.upload_url:
            raise UnexpectedResponse("Missing field `uploadUrl` in upload session response")
        if not meta.next_expected_ranges:
            meta.next_expected_ranges = [ByteRange(start=0, end=file_size)]

        session = UploadSession(meta=meta, file_size=file_size)
        logger.info(f"Created upload session for {file_name} ({file_size} B)")

        if initial_fragment:
            try:
                self.upload_part(
                    session, ByteRange(start=0, end=len(initial_fragment)), initial_fragment
                )
            except OneDriveError as e:
                self._discard(session)
                e.session = session
                raise
        return session

    def get_meta(self, upload_url: str) -> UploadSessionMeta:
        """Query a session's remaining ranges; the URL itself authorizes the call."""
        response = self._client.get(upload_url, authenticated=False)
        meta = _parse_meta(self._classify(response))
        meta.upload_url = upload_url
        return meta

    def resume(self, upload_url: str, file_size: int) -> UploadSession:
        """Rebuild a session from its URL, e.g. after a process restart."""
        meta = self.get_meta(upload_url)
        session = UploadSession(meta=meta, file_size=file_size)
        if session.bytes_remaining < file_size:
            session.state = SessionState.UPLOADING
        return session

    def delete(self, session: UploadSession) -> None:
        """Cancel the session. Deleting an expired or already deleted session is a no-op."""
        if session.state in (SessionState.ABORTED, SessionState.COMPLETED):
            return
        if session.is_expired():
            session.state = SessionState.ABORTED
            return

        response = self._client.delete(session.upload_url, authenticated=False)
        if response.status_code not in (404, 410):
            classify_response(response)
        session.state = SessionState.ABORTED
        logger.info("Deleted upload session")

    def _discard(self, session: UploadSession) -> None:
        """Best-effort delete of a session that is being given up on."""
        try:
            self.delete(session)
        except OneDriveError as e:
            logger.warning(f"Could not delete upload session after a failed first fragment: {e}")

    # ── Uploading ─────────────────────────────────────────────────────

    def upload_part(
        self,
        session: UploadSession,
        byte_range: ByteRange,
        data: bytes,
    ) -> UploadAccepted | UploadCompleted:
        """Upload one chunk.

        Raises:
            SessionExpired: The session expired; nothing was sent.
            ProtocolViolation: The chunk does not fit the session; nothing was sent.
        """
        self._check_open(session)
        self._check_range(session, byte_range, data)

        response = self._client.put(
            session.upload_url,
            authenticated=False,
            content=data,
            extra_headers={"Content-Range": byte_range.content_range(session.file_size)},
        )
        payload = self._classify(response)

        if response.status_code == 202:
            meta = _parse_meta(payload)
            session.meta = session.meta.model_copy(
                update={
                    "next_expected_ranges": meta.next_expected_ranges,
                    "expiration_date_time": meta.expiration_date_time
                    or session.meta.expiration_date_time,
                }
            )
            session.state = SessionState.UPLOADING
            logger.debug(f"Uploaded {byte_range}; expecting {[str(r) for r in meta.next_expected_ranges]}")
            return UploadAccepted(next_expected_ranges=meta.next_expected_ranges)

        if payload is None:
            raise UnexpectedResponse(f"Empty body in HTTP {response.status_code} upload response")
        try:
            item = DriveItem.model_validate(payload)
        except ValidationError as e:
            raise UnexpectedResponse(f"Malformed item in upload response: {e}") from e

        session.meta = session.meta.model_copy(update={"next_expected_ranges": []})
        session.state = SessionState.COMPLETED
        session.item = item
        logger.info(f"Upload completed: {item.name}")
        return UploadCompleted(item=item)

    def upload_stream(
        self,
        session: UploadSession,
        stream: BinaryIO,
        chunk_size: int,
        progress: Callable[[int], None] | None = None,
    ) -> UploadCompleted:
        """Upload every range the server still expects, one chunk at a time.

        The stream must be seekable and hold exactly ``session.file_size``
        bytes. Failures propagate immediately; call again to continue from
        whatever the server has accepted.
        """
        if session.state == SessionState.COMPLETED and session.item is not None:
            return UploadCompleted(item=session.item)

        while True:
            ranges = session.expected_ranges()
            if not ranges:
                raise UnexpectedResponse("Server expects no more bytes but did not report completion")

            chunk = plan_chunks(ranges, chunk_size)[0]
            stream.seek(chunk.start)
            data = stream.read(len(chunk))
            result = self.upload_part(session, chunk, data)
            if progress is not None:
                progress(len(chunk))
            if isinstance(result, UploadCompleted):
                return result
            if session.expected_ranges() == ranges:
                raise UnexpectedResponse(f"Server did not accept range {chunk}")

    def upload_bytes(
        self,
        session: UploadSession,
        data: bytes,
        chunk_size: int,
    ) -> UploadCompleted:
        """Upload an in-memory payload; see :meth:`upload_stream`."""
        if len(data) != session.file_size:
            raise ProtocolViolation(
                f"Payload is {len(data)} B but the session was declared for {session.file_size} B"
            )
        return self.upload_stream(session, io.BytesIO(data), chunk_size)

    # ── Checks ────────────────────────────────────────────────────────

    @staticmethod
    def _check_open(session: UploadSession) -> None:
        if session.is_expired():
            raise SessionExpired(
                f"Upload session expired at {session.expiration_date_time.isoformat()}"  # type: ignore[union-attr]
            )
        if session.state == SessionState.COMPLETED:
            raise ProtocolViolation("Upload session is already completed")
        if session.state == SessionState.ABORTED:
            raise ProtocolViolation("Upload session was deleted")

    @staticmethod
    def _check_range(session: UploadSession, byte_range: ByteRange, data: bytes) -> None:
        if byte_range.end is None:
            raise ProtocolViolation("Chunk range must be closed")
        if len(byte_range) == 0:
            raise ProtocolViolation("Chunk range is empty")
        if byte_range.end > session.file_size:
            raise ProtocolViolation(
                f"Chunk range {byte_range} runs past the file size {session.file_size}"
            )
        if len(data) != len(byte_range):
            raise ProtocolViolation(
                f"Chunk data is {len(data)} B but range {byte_range} is {len(byte_range)} B"
            )
        if not session.accepts(byte_range):
            expected = ", ".join(str(r) for r in session.expected_ranges()) or "none"
            raise ProtocolViolation(
                f"Chunk range {byte_range} is not within an expected range ({expected})"
            )

    @staticmethod
    def _classify(response: httpx.Response) -> dict | None:
        """Classify a response from a session URL, mapping 404/410 to session errors."""
        try:
            return classify_response(response)
        except HttpApiError as e:
            if e.status == 404:
                raise SessionNotFound("Upload session not found", status=404) from e
            if e.status == 410:
                raise SessionExpired("Upload session is gone", status=410) from e
            raise


def _parse_meta(payload: dict | None) -> UploadSessionMeta:
    if payload is None:
        raise UnexpectedResponse("Empty upload session response")
    try:
        return UploadSessionMeta.model_validate(payload)
    except ValidationError as e:
        raise UnexpectedResponse(f"Malformed upload session response: {e}") from e
