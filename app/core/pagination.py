"""Query parameters and SQL helpers for paginated, searchable, sortable lists."""

from typing import Dict, List, Optional, Sequence, Tuple

from fastapi import Query
from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import SortOrder
from app.core.exceptions import bad_request
from app.core.schemas import Pagination


class ListParams:
    """Common list query string: page, limit, search, sortBy, sortOrder."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
        search: Optional[str] = Query(None, max_length=100),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        sort_order: SortOrder = Query(SortOrder.ASC, alias="sortOrder"),
    ) -> None:
        self.page = page
        self.limit = limit
        self.search = search.strip() if search and search.strip() else None
        self.sort_by = sort_by
        self.sort_order = sort_order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pagination(self, total: int) -> Pagination:
        return Pagination.build(self.page, self.limit, total)


def apply_search(stmt: Select, search: Optional[str], columns: Sequence) -> Select:
    if not search:
        return stmt
    pattern = f"%{search}%"
    return stmt.where(or_(*[c.ilike(pattern) for c in columns]))


def apply_sort(stmt: Select, params: ListParams, allowed: Dict[str, object], default: List) -> Select:
    """Order by a whitelisted column when sortBy is given, else by the default clauses."""
    if not params.sort_by:
        return stmt.order_by(*default)
    column = allowed.get(params.sort_by)
    if column is None:
        raise bad_request(f"Invalid sort field: {params.sort_by}")
    if params.sort_order == SortOrder.DESC:
        return stmt.order_by(column.desc())
    return stmt.order_by(column.asc())


async def count_rows(db: AsyncSession, stmt: Select) -> int:
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    return (await db.execute(count_stmt)).scalar() or 0


async def fetch_page(
    db: AsyncSession, stmt: Select, params: ListParams, scalars: bool = False
) -> Tuple[list, int]:
    """Run stmt for one page. scalars=True yields ORM objects, otherwise row dicts."""
    total = await count_rows(db, stmt)
    result = await db.execute(stmt.offset(params.offset).limit(params.limit))
    if scalars:
        return list(result.scalars().all()), total
    return [dict(r) for r in result.mappings().all()], total
