import math
from typing import Callable, Generic, List, Literal, Mapping, Optional, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.config import settings
from socialgraph.core.exceptions import ValidationFailed
from socialgraph.core.validation import parse_input

T = TypeVar("T")


class PageRequest(BaseModel):
    """Zero-based page index, page size and an optional sort."""

    page: int = Field(0, ge=0)
    size: int = Field(default_factory=lambda: settings.default_page_size, gt=0)
    sort: Optional[str] = None
    direction: Literal["asc", "desc"] = "desc"

    @classmethod
    def of(cls, **params) -> "PageRequest":
        """Build a request from caller input, raising ValidationFailed when it is malformed."""
        return parse_input(cls, **params)

    @property
    def offset(self) -> int:
        return self.page * self.size


class Page(BaseModel, Generic[T]):
    items: List[T]
    total_elements: int
    total_pages: int
    page: int
    size: int

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 0


def total_pages(total_elements: int, size: int) -> int:
    return math.ceil(total_elements / size) if total_elements else 0


def empty_page(page_request: PageRequest) -> Page:
    return Page(items=[], total_elements=0, total_pages=0, page=page_request.page, size=page_request.size)


def apply_sort(
    query: Select,
    page_request: PageRequest,
    columns: Mapping[str, object],
    default: str,
    tie_breaker=None,
) -> Select:
    """Order ``query`` by the requested column, falling back to ``default``.

    ``columns`` whitelists the sortable fields by name. Unknown names are
    rejected rather than silently ignored.
    """
    name = page_request.sort or default
    if name not in columns:
        raise ValidationFailed(
            f"cannot sort by '{name}', expected one of {sorted(columns)}", field="sort"
        )
    column = columns[name]
    ordered = column.desc() if page_request.direction == "desc" else column.asc()
    query = query.order_by(ordered)
    if tie_breaker is not None:
        query = query.order_by(tie_breaker.desc() if page_request.direction == "desc" else tie_breaker.asc())
    return query


async def paginate(
    db: AsyncSession,
    query: Select,
    page_request: PageRequest,
    transform: Optional[Callable] = None,
) -> Page:
    """Run ``query`` for one page and count the whole result set.

    ``query`` must already carry its ORDER BY; the count drops it.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar_one()

    items: list = []
    if page_request.offset < total:
        result = await db.execute(query.limit(page_request.size).offset(page_request.offset))
        items = list(result.scalars().all())
        if transform is not None:
            items = [transform(item) for item in items]

    return Page(
        items=items,
        total_elements=total,
        total_pages=total_pages(total, page_request.size),
        page=page_request.page,
        size=page_request.size,
    )
