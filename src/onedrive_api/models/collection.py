"""Collection pages, continuation cursors and fetcher state."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from onedrive_api.models.items import DriveItem


class NextLink(BaseModel):
    """More pages of the current listing or epoch are pending."""
    kind: Literal["next"] = "next"
    url: str

    model_config = {"frozen": True}


class DeltaLink(BaseModel):
    """The epoch is closed; ``url`` resumes the next sync epoch."""
    kind: Literal["delta"] = "delta"
    url: str

    model_config = {"frozen": True}


class EndOfListing(BaseModel):
    """The listing is exhausted and there is nothing to resume."""
    kind: Literal["end"] = "end"

    model_config = {"frozen": True}


Cursor = Annotated[Union[NextLink, DeltaLink, EndOfListing], Field(discriminator="kind")]


class CollectionResponse(BaseModel):
    """One page of ``/children`` or ``/delta``."""
    value: list[DriveItem] = Field(default_factory=list)
    next_link: str | None = Field(default=None, alias="@odata.nextLink")
    delta_link: str | None = Field(default=None, alias="@odata.deltaLink")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    def cursor(self) -> NextLink | DeltaLink | EndOfListing:
        # A page carrying both links still has pages pending.
        if self.next_link:
            return NextLink(url=self.next_link)
        if self.delta_link:
            return DeltaLink(url=self.delta_link)
        return EndOfListing()


class FetcherKind(str, Enum):
    CHILDREN = "children"
    DELTA = "delta"


class Fetcher(BaseModel):
    """Resumable state of a paged listing.

    Holds only URLs, never a connection, so it can be stored with
    ``model_dump_json()`` and picked up again in another process. The
    network side lives in :class:`onedrive_api.services.drive.DriveService`.
    """
    kind: FetcherKind
    initial_url: str
    cursor: Cursor

    @classmethod
    def start(cls, kind: FetcherKind, url: str) -> Fetcher:
        return cls(kind=kind, initial_url=url, cursor=NextLink(url=url))

    @classmethod
    def resume_from(cls, url: str, kind: FetcherKind = FetcherKind.DELTA) -> Fetcher:
        """Continue from a stored ``next_link`` or ``delta_link``."""
        return cls.start(kind, url)

    @property
    def exhausted(self) -> bool:
        return not isinstance(self.cursor, NextLink)

    @property
    def next_link(self) -> str | None:
        """URL of the page still to fetch, for resuming mid-listing."""
        return self.cursor.url if isinstance(self.cursor, NextLink) else None

    @property
    def delta_link(self) -> str | None:
        """Resumption point for the next sync epoch, once this one is closed."""
        return self.cursor.url if isinstance(self.cursor, DeltaLink) else None


class Page(BaseModel):
    """Items of one fetched page, in server order."""
    items: list[DriveItem]
    cursor: Cursor
