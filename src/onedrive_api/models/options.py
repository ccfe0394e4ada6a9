"""OData query options for collection requests."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CollectionOption(BaseModel):
    """Query parameters for ``/children`` and ``/delta``.

    Not every endpoint supports every parameter; the server rejects the
    ones it does not understand.
    """
    select: list[str] = Field(default_factory=list)
    expand: list[str] = Field(default_factory=list)
    order_by: str | None = None
    page_size: int | None = Field(default=None, gt=0)

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.select:
            params["$select"] = ",".join(self.select)
        if self.expand:
            params["$expand"] = ",".join(self.expand)
        if self.order_by:
            params["$orderby"] = self.order_by
        if self.page_size is not None:
            params["$top"] = str(self.page_size)
        return params
