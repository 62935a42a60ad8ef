"""Pagination arithmetic shared by every query strategy."""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def total_pages(total: int, limit: int) -> int:
    """ceil(total / limit), and 0 when there are no results."""
    if total <= 0:
        return 0
    return math.ceil(total / limit)
