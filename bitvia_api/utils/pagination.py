"""Offset/limit clamping shared by paginated endpoints."""

from dataclasses import dataclass
from typing import Optional

MAX_PAGE_LIMIT = 200


@dataclass(frozen=True)
class Page:
    """Clamped page bounds over a list of ``total`` items."""
    offset: int
    limit: int
    end: int

    def slice(self, items: list) -> list:
        return items[self.offset:self.end] if self.offset < self.end else []


def clamp_page(total: int, offset: Optional[int], limit: Optional[int], default_limit: int) -> Page:
    """Clamp limit to [1, 200] and offset to [0, total]; end = min(offset + limit, total)."""
    limit = max(1, min(MAX_PAGE_LIMIT, default_limit if limit is None else limit))
    offset = max(0, min(offset or 0, total))
    return Page(offset=offset, limit=limit, end=min(offset + limit, total))
