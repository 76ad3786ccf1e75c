from math import ceil
from typing import List, Sequence, Tuple, TypeVar

from .schemas.account import Pagination

T = TypeVar("T")

DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100


def paginate(items: Sequence[T], page: int, per_page: int) -> Tuple[List[T], Pagination]:
    total = len(items)
    start = (page - 1) * per_page
    chunk = list(items[start : start + per_page])
    meta = Pagination(
        total=total,
        count=len(chunk),
        per_page=per_page,
        current_page=page,
        total_pages=max(1, ceil(total / per_page)),
    )
    return chunk, meta
