from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One keyset page of a range query.

    `next_cursor` is None on the last page.
    """

    items: Sequence[T] = field(default_factory=tuple)
    next_cursor: Optional[str] = None


def collect_pages(fetch: Callable[[Optional[str]], Page[T]], *, max_pages: int = 10_000) -> List[T]:
    """Drain a paginated query into a list."""
    out: List[T] = []
    cursor: Optional[str] = None
    for _ in range(max_pages):
        page = fetch(cursor)
        out.extend(page.items)
        if not page.next_cursor:
            return out
        cursor = page.next_cursor
    raise RuntimeError("Pagination did not terminate")
