"""Shared paging helper for repository listings."""

from typing import Any, Callable, Optional, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from src.core.billing.models import Page, PageRequest


T = TypeVar("T")


def paginate(
    session: Session,
    statement: Select,
    page: Optional[PageRequest],
    build: Callable[[Any], T],
    scalars: bool = True,
) -> Page[T]:
    """
    Run an ordered statement as one page plus a total count.

    With page=None every row is returned as a single page. scalars=False
    passes whole result rows (for multi-entity selects) to build().
    """
    total = session.scalar(select(func.count()).select_from(statement.order_by(None).subquery()))

    if page is not None:
        statement = statement.offset(page.offset).limit(page.limit)

    result = session.scalars(statement) if scalars else session.execute(statement)
    items = [build(row) for row in result]

    if page is None:
        return Page(items=items, total=total, page=1, limit=max(total, 1))
    return Page(items=items, total=total, page=page.page, limit=page.limit)
