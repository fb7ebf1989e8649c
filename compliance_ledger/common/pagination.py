"""
Pagination policy shared by the decision ledger and the audit aggregator.

Invalid input is clamped, never rejected:
- page < 1 becomes 1
- page_size < 1 becomes the configured default
- page_size above the configured maximum becomes the maximum
"""

import math
from typing import List, Optional, Sequence, Tuple, TypeVar

from compliance_ledger.core.config import settings

T = TypeVar("T")


def clamp_page(
    page: int,
    page_size: int,
    default_page_size: Optional[int] = None,
    max_page_size: Optional[int] = None,
) -> Tuple[int, int]:
    """Return a (page, page_size) pair inside the configured bounds."""
    default_size = default_page_size or settings.default_page_size
    max_size = max_page_size or settings.max_page_size

    if page_size < 1:
        page_size = default_size
    page_size = min(page_size, max_size)
    page = max(page, 1)
    return page, page_size


def paginate(items: Sequence[T], page: int, page_size: int) -> List[T]:
    """Slice one page out of an already ordered, already clamped sequence."""
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


def total_pages(total_count: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(total_count / page_size)
