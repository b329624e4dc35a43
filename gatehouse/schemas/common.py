"""Response envelope and pagination metadata shared by every endpoint."""

import math
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_serializer

from gatehouse.models.base import as_utc

DataT = TypeVar("DataT")


def to_iso8601(value: datetime | None) -> str | None:
    """Serialize a timestamp as ISO-8601 in UTC (None stays None)."""
    value = as_utc(value)
    return value.isoformat() if value is not None else None


class PageMeta(BaseModel):
    """Pagination metadata copied from a paged query; 'from'/'to' are 1-based item positions."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int
    from_: int | None = Field(default=None, alias="from")
    last_page: int
    per_page: int
    to: int | None = None
    total: int

    @classmethod
    def build(cls, page: int, per_page: int, total: int, item_count: int) -> "PageMeta":
        first = (page - 1) * per_page + 1 if item_count else None
        last = first + item_count - 1 if first is not None else None
        return cls(
            current_page=page,
            from_=first,
            last_page=max(1, math.ceil(total / per_page)) if per_page else 1,
            per_page=per_page,
            to=last,
            total=total,
        )


class ApiResponse(BaseModel, Generic[DataT]):
    """
    Envelope for every JSON response: {success, data, message?, meta?}.

    message and meta are omitted when empty.
    """

    success: bool = True
    data: DataT
    message: str | None = None
    meta: PageMeta | None = None

    @model_serializer(mode="wrap")
    def omit_empty(self, handler: Any) -> dict[str, Any]:
        out = handler(self)
        if not out.get("message"):
            out.pop("message", None)
        if not out.get("meta"):
            out.pop("meta", None)
        return out


class EmptyData(BaseModel):
    """Serialized as {} in the envelope's data field."""

    pass


def success(
    data: Any = None, message: str | None = None, meta: PageMeta | None = None
) -> ApiResponse:
    return ApiResponse(
        success=True,
        data=data if data is not None else EmptyData(),
        message=message,
        meta=meta,
    )


def error_body(message: str, errors: dict[str, Any] | None = None) -> dict[str, Any]:
    """JSON body for a failed request; field errors go under data."""
    return ApiResponse(success=False, data=errors or {}, message=message).model_dump(
        mode="json", by_alias=True
    )
