"""
Module: backend/utils/pagination.py
Page request parsing and the page container returned by list operations.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Generic, Mapping, Sequence, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from utils.config_handler import page_limits
from utils.errors import InvalidArgument
from utils.validation import MAX_ID

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "PageRequest":
        default_limit, max_limit = page_limits()
        page = _as_int(args.get("page"), "page", 1)
        limit = _as_int(args.get("limit"), "limit", default_limit)
        if page < 1:
            raise InvalidArgument("page must be >= 1", details={"field": "page", "value": page})
        if limit < 1 or limit > max_limit:
            raise InvalidArgument(f"limit must be between 1 and {max_limit}", details={"field": "limit", "value": limit})
        max_page = MAX_ID // limit + 1
        if page > max_page:
            raise InvalidArgument(f"page must be <= {max_page}", details={"field": "page", "value": page})
        return cls(page=page, limit=limit)


def _as_int(value: Any, field: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidArgument(f"{field} must be an integer", details={"field": field})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{field} must be an integer", details={"field": field, "value": value})


@dataclass
class Page(Generic[T]):
    items: Sequence[T]
    records: int
    current: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.records + self.limit - 1) // self.limit

    def pagination(self) -> dict[str, int]:
        return {"current": self.current, "limit": self.limit, "records": self.records, "pages": self.pages}


def paginate(session: Session, stmt: Select, page: PageRequest) -> Page:
    """Run a filtered select as one page plus its total count."""
    total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    rows = session.scalars(stmt.offset(page.offset).limit(page.limit)).all()
    return Page(items=rows, records=int(total), current=page.page, limit=page.limit)
