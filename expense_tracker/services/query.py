"""List-endpoint query composition: sort parsing, paging maths, page links.

Sort expressions use the API's field names, comma separated, with a leading
``-`` for descending order: ``status,-id``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from expense_tracker.core.errors import InvalidSortError

T = TypeVar("T")

# API field name -> storage column
SORT_FIELDS = {
    "id": "id",
    "userid": "user_id",
    "name": "title",
    "description": "description",
    "status": "expense_group_status_id",
}


def parse_sort(sort: Optional[str]) -> List[Tuple[str, bool]]:
    """Translate ``sort`` into (column, descending) pairs; defaults to id."""
    spec: List[Tuple[str, bool]] = []
    for raw in (sort or "").split(","):
        term = raw.strip()
        if not term:
            continue
        descending = term.startswith("-")
        name = term.lstrip("-").strip().lower()
        column = SORT_FIELDS.get(name)
        if column is None:
            raise InvalidSortError(f"cannot sort on '{term.lstrip('-')}'")
        spec.append((column, descending))
    return spec or [("id", False)]


def total_pages(total_count: int, page_size: int) -> int:
    return math.ceil(total_count / page_size)


def page_slice(items: Sequence[T], page: int, page_size: int) -> List[T]:
    start = page_size * (page - 1)
    return list(items[start : start + page_size])


@dataclass
class PaginationEnvelope:
    currentPage: int
    pageSize: int
    totalCount: int
    totalPages: int
    previousPageLink: str
    nextPageLink: str

    def as_dict(self) -> dict:
        return asdict(self)


def build_pagination(
    page: int,
    page_size: int,
    total_count: int,
    link_for: Callable[[int], str],
) -> PaginationEnvelope:
    """Build the envelope; ``link_for(n)`` renders the URL of page ``n``.

    Links are empty strings on the first page (previous) and on or past the
    last page (next).
    """
    pages = total_pages(total_count, page_size)
    return PaginationEnvelope(
        currentPage=page,
        pageSize=page_size,
        totalCount=total_count,
        totalPages=pages,
        previousPageLink=link_for(page - 1) if page > 1 else "",
        nextPageLink=link_for(page + 1) if page < pages else "",
    )
