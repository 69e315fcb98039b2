import math
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class Page:
    effective_page: int
    total_pages: int
    offset: int
    limit: int


@dataclass
class PageResult:
    """Rows of one page together with the metadata used to render its pager."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    total_count: int = 0
    current_page: int = 1
    page_size: int = 0
    total_pages: int = 1

    @property
    def row_count(self) -> int:
        return len(self.rows)


def coerce_page(requested: Any) -> int:
    """Turn a request value into a page number; anything unusable is page 1."""
    try:
        page = int(str(requested).strip())
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def paginate(total_rows: int, page_size: int, requested_page: Any = 1) -> Page:
    """
    Convert a row count and page size into page metadata.

    Args:
        total_rows: Number of rows matching the query
        page_size: Rows per page; ``<= 0`` shows every row on a single page
        requested_page: Page asked for; non-numeric or ``< 1`` means page 1,
            past the end means the last page

    Returns:
        Page with the effective page, total pages, offset and limit
    """
    total_rows = max(int(total_rows or 0), 0)
    if page_size is None or page_size <= 0:
        page_size = max(total_rows, 1)

    total_pages = max(1, math.ceil(total_rows / page_size))
    page = min(coerce_page(requested_page), total_pages)
    return Page(
        effective_page=page,
        total_pages=total_pages,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
