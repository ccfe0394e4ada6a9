"""Tests for services/upload.py: session lifecycle, chunk uploads, local checks."""
import io
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from onedrive_api.errors import (
    HttpApiError,
    ProtocolViolation,
    RateLimited,
    SessionExpired,
    SessionNotFound,
    TransportFailure,
    UnexpectedResponse,
)
from onedrive_api.models.items import ConflictBehavior
from onedrive_api.models.upload import (
    ByteRange,
    SessionState,
    UploadAccepted,
    UploadCompleted,
    UploadSession,
    UploadSessionMeta,
)
from onedrive_api.services.upload import UploadService
from onedrive_api.utils.locations import DriveLocation, ItemLocation

UPLOAD_URL = "https://sn3302.up.1drv.com/up/fe6987415ace7X4e1eF866337"


def _future(hours=1) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _session(file_size=26, ranges=None, expires=None, state=SessionState.CREATED) -> UploadSession:
    meta = UploadSessionMeta(
        upload_url=UPLOAD_URL,
        expiration_date_time=expires or datetime.now(timezone.utc) + timedelta(hours=1),
        next_expected_ranges=ranges if ranges is not None else [ByteRange(start=0, end=file_size)],
    )
    return UploadSession(meta=meta, file_size=file_size, state=state)


def _accepted(*ranges: str) -> httpx.Response:
    return httpx.Response(202, json={"expirationDateTime": _future(), "nextExpectedRanges": list(ranges)})


def _created(name="a.txt", size=26) -> httpx.Response:
    return httpx.Response(201, json={"id": "ITEM1", "name": name, "size": size, "file": {}})


@pytest.fixture
def service(mock_client):
    return UploadService(mock_client)


# ── create_session ───────────────────────────────────────────────────

def test_create_session_posts_to_child_path(service, mock_client):
    mock_client.post.return_value = httpx.Response(
        200, json={"uploadUrl": UPLOAD_URL, "expirationDateTime": _future(), "nextExpectedRanges": ["0-"]}
    )
    session = service.create_session(ItemLocation.from_path("/Docs"), "a.txt", 26, ConflictBehavior.RENAME)

    path = mock_client.post.call_args[0][0]
    body = mock_client.post.call_args[1]["json"]
    assert path == "me/drive/root:/Docs/a.txt:/createUploadSession"
    assert body == {"item": {"@microsoft.graph.conflictBehavior": "rename", "name": "a.txt"}}
    assert session.upload_url == UPLOAD_URL
    assert session.state == SessionState.CREATED
    assert session.expected_ranges() == [ByteRange(start=0, end=26)]


def test_create_session_other_drive_and_id_parent(mock_client):
    service = UploadService(mock_client, DriveLocation.from_id("b!xyz"))
    mock_client.post.return_value = httpx.Response(200, json={"uploadUrl": UPLOAD_URL})
    service.create_session(ItemLocation.from_id("FOLDER1"), "a.txt", 10)
    assert mock_client.post.call_args[0][0] == "drives/b%21xyz/items/FOLDER1:/a.txt:/createUploadSession"


def test_create_session_defaults_ranges_to_whole_file(service, mock_client):
    mock_client.post.return_value = httpx.Response(200, json={"uploadUrl": UPLOAD_URL})
    session = service.create_session(ItemLocation.root(), "a.txt", 100)
    assert session.expected_ranges() == [ByteRange(start=0, end=100)]
    assert mock_client.post.call_args[1]["json"]["item"]["@microsoft.graph.conflictBehavior"] == "fail"


def test_create_session_missing_upload_url(service, mock_client):
    mock_client.post.return_value = httpx.Response(200, json={"nextExpectedRanges": ["0-"]})
    with pytest.raises(UnexpectedResponse, match="uploadUrl"):
        service.create_session(ItemLocation.root(), "a.txt", 10)


def test_create_session_with_initial_fragment(service, mock_client):
    mock_client.post.return_value = httpx.Response(200, json={"uploadUrl": UPLOAD_URL, "nextExpectedRanges": ["0-"]})
    mock_client.put.return_value = _accepted("10-")
    session = service.create_session(ItemLocation.root(), "a.txt", 26, initial_fragment=b"x" * 10)
    assert session.state == SessionState.UPLOADING
    assert mock_client.put.call_args[1]["extra_headers"]["Content-Range"] == "bytes 0-9/26"
    assert session.expected_ranges() == [ByteRange(start=10, end=26)]


def test_create_session_fragment_failure_deletes_session(service, mock_client):
    mock_client.post.return_value = httpx.Response(200, json={"uploadUrl": UPLOAD_URL, "expirationDateTime": _future()})
    mock_client.put.return_value = httpx.Response(429, headers={"Retry-After": "5"})
    mock_client.delete.return_value = httpx.Response(204)

    with pytest.raises(RateLimited) as exc_info:
        service.create_session(ItemLocation.root(), "a.txt", 26, initial_fragment=b"x" * 10)

    session = exc_info.value.session
    assert session.upload_url == UPLOAD_URL
    assert session.state == SessionState.ABORTED
    assert mock_client.delete.call_args[0][0] == UPLOAD_URL
    assert mock_client.delete.call_args[1]["authenticated"] is False


def test_create_session_fragment_failure_survives_failed_delete(service, mock_client):
    mock_client.post.return_value = httpx.Response(200, json={"uploadUrl": UPLOAD_URL})
    mock_client.put.return_value = httpx.Response(503)
    mock_client.delete.side_effect = TransportFailure("refused")

    with pytest.raises(HttpApiError) as exc_info:
        service.create_session(ItemLocation.root(), "a.txt", 26, initial_fragment=b"x" * 10)

    assert exc_info.value.status == 503
    assert exc_info.value.session.upload_url == UPLOAD_URL


def test_create_session_empty_file_sends_nothing(service, mock_client):
    with pytest.raises(ProtocolViolation, match="positive"):
        service.create_session(ItemLocation.root(), "empty.txt", 0)
    mock_client.post.assert_not_called()


def test_create_session_invalid_name_sends_nothing(service, mock_client):
    with pytest.raises(ValueError):
        service.create_session(ItemLocation.root(), "a:b.txt", 10)
    mock_client.post.assert_not_called()


def test_create_session_name_conflict(service, mock_client):
    mock_client.post.return_value = httpx.Response(
        409, json={"error": {"code": "nameAlreadyExists", "message": "exists"}}
    )
    with pytest.raises(HttpApiError) as exc_info:
        service.create_session(ItemLocation.root(), "a.txt", 10)
    assert exc_info.value.status == 409


# ── upload_part ──────────────────────────────────────────────────────

def test_upload_part_accepted(service, mock_client):
    session = _session()
    mock_client.put.return_value = _accepted("10-")

    result = service.upload_part(session, ByteRange(start=0, end=10), b"abcdefghij")

    assert isinstance(result, UploadAccepted)
    assert result.next_expected_ranges == [ByteRange(start=10, end=None)]
    assert session.state == SessionState.UPLOADING
    args, kwargs = mock_client.put.call_args
    assert args[0] == UPLOAD_URL
    assert kwargs["authenticated"] is False
    assert kwargs["content"] == b"abcdefghij"
    assert kwargs["extra_headers"] == {"Content-Range": "bytes 0-9/26"}


def test_upload_part_completed(service, mock_client):
    session = _session(ranges=[ByteRange(start=10, end=None)])
    mock_client.put.return_value = _created()

    result = service.upload_part(session, ByteRange(start=10, end=26), b"k" * 16)

    assert isinstance(result, UploadCompleted)
    assert result.item.id == "ITEM1"
    assert session.state == SessionState.COMPLETED
    assert session.item.name == "a.txt"
    assert session.bytes_remaining == 0


def test_upload_part_completed_with_200(service, mock_client):
    session = _session(file_size=4)
    mock_client.put.return_value = httpx.Response(200, json={"id": "ITEM2", "name": "b.bin", "size": 4})
    assert isinstance(service.upload_part(session, ByteRange(start=0, end=4), b"abcd"), UploadCompleted)


def test_upload_part_outside_expected_range_sends_nothing(service, mock_client):
    session = _session(ranges=[ByteRange(start=10, end=None)])
    with pytest.raises(ProtocolViolation, match="not within"):
        service.upload_part(session, ByteRange(start=0, end=10), b"x" * 10)
    mock_client.put.assert_not_called()


def test_upload_part_length_mismatch_sends_nothing(service, mock_client):
    with pytest.raises(ProtocolViolation):
        service.upload_part(_session(), ByteRange(start=0, end=10), b"short")
    mock_client.put.assert_not_called()


def test_upload_part_past_file_size_sends_nothing(service, mock_client):
    with pytest.raises(ProtocolViolation):
        service.upload_part(_session(file_size=8), ByteRange(start=0, end=10), b"x" * 10)
    mock_client.put.assert_not_called()


def test_upload_part_expired_sends_nothing(service, mock_client):
    session = _session(expires=datetime.now(timezone.utc) - timedelta(seconds=1))
    with pytest.raises(SessionExpired) as exc_info:
        service.upload_part(session, ByteRange(start=0, end=10), b"x" * 10)
    assert exc_info.value.status is None
    mock_client.put.assert_not_called()


def test_upload_part_after_completion_sends_nothing(service, mock_client):
    session = _session(state=SessionState.COMPLETED)
    with pytest.raises(ProtocolViolation):
        service.upload_part(session, ByteRange(start=0, end=10), b"x" * 10)
    mock_client.put.assert_not_called()


def test_upload_part_failure_leaves_session_unchanged(service, mock_client):
    session = _session(ranges=[ByteRange(start=10, end=26)])
    before = session.model_copy(deep=True)
    mock_client.put.return_value = httpx.Response(
        429, headers={"Retry-After": "10"}, json={"error": {"code": "activityLimitReached", "message": "x"}}
    )
    with pytest.raises(RateLimited):
        service.upload_part(session, ByteRange(start=10, end=20), b"x" * 10)
    assert session == before


def test_upload_part_404_is_session_not_found(service, mock_client):
    mock_client.put.return_value = httpx.Response(404, json={"error": {"code": "itemNotFound", "message": "x"}})
    with pytest.raises(SessionNotFound) as exc_info:
        service.upload_part(_session(), ByteRange(start=0, end=10), b"x" * 10)
    assert exc_info.value.status == 404


def test_upload_part_410_is_session_expired(service, mock_client):
    mock_client.put.return_value = httpx.Response(410)
    with pytest.raises(SessionExpired) as exc_info:
        service.upload_part(_session(), ByteRange(start=0, end=10), b"x" * 10)
    assert not isinstance(exc_info.value, SessionNotFound)


# ── upload_bytes / upload_stream ─────────────────────────────────────

def test_upload_bytes_reconstructs_payload(service, mock_client):
    data = bytes(range(26))
    received = bytearray(26)

    def fake_put(url, *, authenticated, content, extra_headers):
        header = extra_headers["Content-Range"].split()[1]
        start = int(header.split("-")[0])
        received[start:start + len(content)] = content
        end = start + len(content)
        if end == 26:
            return _created()
        return _accepted(f"{end}-")

    mock_client.put.side_effect = fake_put
    session = _session()
    result = service.upload_bytes(session, data, chunk_size=10)

    assert result.item.id == "ITEM1"
    assert bytes(received) == data
    ranges = [c[1]["extra_headers"]["Content-Range"] for c in mock_client.put.call_args_list]
    assert ranges == ["bytes 0-9/26", "bytes 10-19/26", "bytes 20-25/26"]


def test_upload_bytes_skips_ranges_already_uploaded(service, mock_client):
    mock_client.put.return_value = _created()
    session = _session(ranges=[ByteRange(start=20, end=None)])
    service.upload_bytes(session, b"z" * 26, chunk_size=10)
    assert mock_client.put.call_count == 1
    assert mock_client.put.call_args[1]["extra_headers"]["Content-Range"] == "bytes 20-25/26"


def test_upload_bytes_size_mismatch(service, mock_client):
    with pytest.raises(ProtocolViolation):
        service.upload_bytes(_session(file_size=26), b"x" * 10, chunk_size=10)
    mock_client.put.assert_not_called()


def test_upload_stream_stalls_when_server_does_not_advance(service, mock_client):
    mock_client.put.return_value = _accepted("0-")
    with pytest.raises(UnexpectedResponse):
        service.upload_bytes(_session(), b"x" * 26, chunk_size=10)


def test_upload_stream_reports_progress(service, mock_client):
    mock_client.put.side_effect = [_accepted("16-"), _created()]
    seen = []
    service.upload_stream(_session(), io.BytesIO(b"y" * 26), 16, progress=seen.append)
    assert seen == [16, 10]


# ── get_meta / resume / delete ───────────────────────────────────────

def test_get_meta_unauthenticated(service, mock_client):
    mock_client.get.return_value = httpx.Response(
        200, json={"expirationDateTime": _future(), "nextExpectedRanges": ["12345-55232", "77829-99055"]}
    )
    meta = service.get_meta(UPLOAD_URL)
    assert mock_client.get.call_args[1]["authenticated"] is False
    assert meta.upload_url == UPLOAD_URL
    assert meta.next_expected_ranges == [ByteRange(start=12345, end=55233), ByteRange(start=77829, end=99056)]


def test_resume_marks_partial_upload(service, mock_client):
    mock_client.get.return_value = httpx.Response(200, json={"nextExpectedRanges": ["10-"]})
    session = service.resume(UPLOAD_URL, 26)
    assert session.state == SessionState.UPLOADING
    assert session.bytes_remaining == 16


def test_resume_gone_session(service, mock_client):
    mock_client.get.return_value = httpx.Response(404)
    with pytest.raises(SessionNotFound):
        service.resume(UPLOAD_URL, 26)


def test_delete(service, mock_client):
    mock_client.delete.return_value = httpx.Response(204)
    session = _session()
    service.delete(session)
    assert session.state == SessionState.ABORTED
    assert mock_client.delete.call_args[1]["authenticated"] is False


def test_delete_already_gone_counts_as_success(service, mock_client):
    mock_client.delete.return_value = httpx.Response(404)
    session = _session()
    service.delete(session)
    assert session.state == SessionState.ABORTED


def test_delete_twice_is_noop(service, mock_client):
    mock_client.delete.return_value = httpx.Response(204)
    session = _session()
    service.delete(session)
    service.delete(session)
    assert mock_client.delete.call_count == 1


def test_delete_expired_sends_nothing(service, mock_client):
    session = _session(expires=datetime.now(timezone.utc) - timedelta(minutes=1))
    service.delete(session)
    assert session.state == SessionState.ABORTED
    mock_client.delete.assert_not_called()


def test_upload_after_delete_sends_nothing(service, mock_client):
    mock_client.delete.return_value = httpx.Response(204)
    session = _session()
    service.delete(session)
    with pytest.raises(ProtocolViolation):
        service.upload_part(session, ByteRange(start=0, end=10), b"x" * 10)
    mock_client.put.assert_not_called()
