"""
Cursor pagination helpers.

A cursor is the id of the first item of the next page (the extra row fetched
past the limit on the previous page). Pages are fetched as ``limit + 1`` rows;
if the extra row comes back it is popped and its id becomes ``next_cursor``.
"""

from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fannax.services.errors import InvalidInputError
from fannax.utils.constants import MAX_PAGE_LIMIT


def validate_limit(limit: int) -> int:
    """
    Validate a page size.

    Raises:
        InvalidInputError: If limit is not between 1 and MAX_PAGE_LIMIT
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_LIMIT:
        raise InvalidInputError(f"limit must be an integer between 1 and {MAX_PAGE_LIMIT}")
    return limit


async def apply_cursor(
    session: AsyncSession,
    query,
    model,
    sort_column,
    cursor: Optional[int],
    descending: bool,
):
    """
    Order a query by (sort_column, id) and start it at the cursor row, inclusive.

    Args:
        session: Database session
        query: Select statement over ``model``
        model: ORM class with an ``id`` column
        sort_column: Stable ordering column (e.g. ``Prediction.created_at``)
        cursor: Id of the row the page starts at, or None for the first page
        descending: Newest/largest first if True

    Returns:
        The ordered, cursor-filtered select statement

    Raises:
        InvalidInputError: If the cursor does not reference an existing row
    """
    if cursor is not None:
        result = await session.execute(select(model.id).where(model.id == cursor))
        if result.scalar_one_or_none() is None:
            raise InvalidInputError("Invalid cursor")
        # Compared in SQL against the boundary row's stored value
        boundary = (
            select(sort_column).where(model.id == cursor).correlate(None).scalar_subquery()
        )
        if descending:
            query = query.where(
                or_(sort_column < boundary, and_(sort_column == boundary, model.id <= cursor))
            )
        else:
            query = query.where(
                or_(sort_column > boundary, and_(sort_column == boundary, model.id >= cursor))
            )

    if descending:
        return query.order_by(sort_column.desc(), model.id.desc())
    return query.order_by(sort_column.asc(), model.id.asc())


def split_page(items: Sequence[Any], limit: int) -> Tuple[List[Any], Optional[int]]:
    """
    Trim a ``limit + 1`` fetch down to one page.

    Returns:
        Tuple of (page items, next cursor id or None at end of data)
    """
    items = list(items)
    next_cursor = None
    if len(items) > limit:
        next_item = items.pop()
        next_cursor = next_item.id
    return items, next_cursor
