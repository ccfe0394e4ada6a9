"""Pagination helpers for fetcher pages."""

from __future__ import annotations

from typing import Callable, Iterator

from onedrive_api.models.collection import Page
from onedrive_api.models.items import DriveItem


def iter_items(fetch_page: Callable[[], Page | None]) -> Iterator[DriveItem]:
    """Lazily yield items page by page until ``fetch_page`` returns None.

    Args:
        fetch_page: A callable advancing a fetcher by one page, e.g.
            ``lambda: service.next_page(fetcher)``.
    """
    while True:
        page = fetch_page()
        if page is None:
            return
        yield from page.items


def paginate(fetch_page: Callable[[], Page | None]) -> list[DriveItem]:
    """Collect every remaining item, in server order."""
    return list(iter_items(fetch_page))
