"""Listing and change tracking over paged collections.

``/children`` and ``/delta`` are both "GET the continuation URL until a
terminal marker" and share one fetch step. They differ in what the
terminal marker means: the end of a listing, or a delta link that opens
the next sync epoch and is worth persisting.
"""

from __future__ import annotations

import logging
from typing import Iterator

import httpx
from pydantic import ValidationError

from onedrive_api.client import GraphClient
from onedrive_api.errors import UnexpectedResponse
from onedrive_api.models.collection import (
    CollectionResponse,
    DeltaLink,
    EndOfListing,
    Fetcher,
    FetcherKind,
    NextLink,
    Page,
)
from onedrive_api.models.items import DriveItem
from onedrive_api.models.options import CollectionOption
from onedrive_api.utils.classify import classify_response
from onedrive_api.utils.locations import DriveLocation, ItemLocation
from onedrive_api.utils.pagination import iter_items, paginate

logger = logging.getLogger(__name__)


class DriveService:
    """Fetchers for one drive."""

    def __init__(self, client: GraphClient, drive: DriveLocation | None = None) -> None:
        self._client = client
        self._drive = drive or DriveLocation.me()

    def _url(self, folder: ItemLocation, action: str, params: dict[str, str]) -> str:
        url = self._client.url(f"{self._drive.path}/{folder.to_api_path()}/{action}")
        return str(httpx.URL(url, params=params)) if params else url

    # ── Fetcher construction (no network) ─────────────────────────────

    def list_children(
        self,
        folder: ItemLocation,
        option: CollectionOption | None = None,
    ) -> Fetcher:
        """Lazy listing of a folder's children."""
        params = option.to_params() if option else {}
        return Fetcher.start(FetcherKind.CHILDREN, self._url(folder, "children", params))

    def track_changes(
        self,
        folder: ItemLocation,
        cursor: str | None = None,
        option: CollectionOption | None = None,
    ) -> Fetcher:
        """Lazy change feed for a folder tree.

        Args:
            folder: Root of the tracked tree.
            cursor: A stored delta link, or a bare delta token. Empty
                means start over and enumerate the whole tree.
            option: Query options; ignored when resuming from a delta link,
                which already encodes them.
        """
        if cursor and cursor.startswith(("https://", "http://")):
            return Fetcher.resume_from(cursor, FetcherKind.DELTA)

        params = option.to_params() if option else {}
        if cursor:
            params["token"] = cursor
        return Fetcher.start(FetcherKind.DELTA, self._url(folder, "delta", params))

    @staticmethod
    def restart(fetcher: Fetcher) -> Fetcher:
        """A fresh fetcher starting again from the first page."""
        return Fetcher.start(fetcher.kind, fetcher.initial_url)

    # ── Fetching ──────────────────────────────────────────────────────

    def next_page(self, fetcher: Fetcher) -> Page | None:
        """Fetch the next page and advance ``fetcher``.

        Returns None once the listing or epoch is closed. On error the
        fetcher is left where it was, so the same page can be requested
        again.
        """
        if not isinstance(fetcher.cursor, NextLink):
            return None

        payload = classify_response(self._client.get(fetcher.cursor.url))
        collection = _parse_collection(payload)
        cursor = collection.cursor()

        if fetcher.kind == FetcherKind.DELTA and isinstance(cursor, EndOfListing):
            raise UnexpectedResponse("Missing `@odata.deltaLink` on the last page of a delta epoch")
        if fetcher.kind == FetcherKind.CHILDREN and isinstance(cursor, DeltaLink):
            cursor = EndOfListing()

        fetcher.cursor = cursor
        logger.debug(f"Fetched {len(collection.value)} item(s); cursor is now {cursor.kind}")
        return Page(items=collection.value, cursor=cursor)

    def fetch_all(self, fetcher: Fetcher) -> list[DriveItem]:
        """Fetch all remaining pages and collect their items.

        Any error aborts the collection; the fetcher still points at the
        page that failed.
        """
        return paginate(lambda: self.next_page(fetcher))

    def iter_items(self, fetcher: Fetcher) -> Iterator[DriveItem]:
        """Lazily yield remaining items, fetching pages on demand."""
        return iter_items(lambda: self.next_page(fetcher))

    def latest_delta_link(self, folder: ItemLocation) -> str:
        """A delta link for the current state, skipping the full enumeration."""
        url = self._url(folder, "delta", {"token": "latest"})
        collection = _parse_collection(classify_response(self._client.get(url)))
        if not collection.delta_link:
            raise UnexpectedResponse("Missing `@odata.deltaLink` for the latest delta")
        return collection.delta_link


def _parse_collection(payload: dict | None) -> CollectionResponse:
    if payload is None:
        raise UnexpectedResponse("Empty collection response")
    try:
        return CollectionResponse.model_validate(payload)
    except ValidationError as e:
        raise UnexpectedResponse(f"Malformed collection response: {e}") from e
