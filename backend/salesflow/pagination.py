# Overview: Page parameters and paged results shared by the list/search services.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidPaginationError

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PaginationParams:
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def validate(self, max_page_size: int = MAX_PAGE_SIZE) -> "PaginationParams":
        if self.page < 1:
            raise InvalidPaginationError(
                "page must be >= 1", details={"page": self.page}
            )
        if self.page_size < 1 or self.page_size > max_page_size:
            raise InvalidPaginationError(
                f"page_size must be between 1 and {max_page_size}",
                details={"page_size": self.page_size},
            )
        return self


@dataclass
class PaginatedResult:
    items: list[Any] = field(default_factory=list)
    total_items: int = 0
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return int(math.ceil(self.total_items / self.page_size))

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() if hasattr(item, "to_dict") else item for item in self.items],
            "total_items": self.total_items,
            "total_pages": self.total_pages,
            "page": self.page,
            "page_size": self.page_size,
        }


def paginate(query, params: PaginationParams | None, max_page_size: int = MAX_PAGE_SIZE) -> PaginatedResult:
    """Count the query, then fetch one page of it. The query must already be ordered."""
    params = (params or PaginationParams()).validate(max_page_size)
    total = query.order_by(None).count()
    items = query.limit(params.page_size).offset(params.offset).all()
    return PaginatedResult(items=items, total_items=total, page=params.page, page_size=params.page_size)
