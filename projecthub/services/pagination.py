"""
Limit/offset pagination with a parallel total-count query.
"""

from typing import Any, List, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from projecthub.models.common import Pagination


async def paginate(
    session: AsyncSession,
    query: Any,
    limit: int,
    offset: int,
) -> Tuple[List[Any], Pagination]:
    """
    Run a select for one page and count the full result set.

    Args:
        session: Database session.
        query: Filtered select, with ordering applied.
        limit: Page size.
        offset: Rows to skip.

    Returns:
        The page rows and its pagination metadata.
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await session.execute(count_query)).scalar_one()

    result = await session.execute(query.limit(limit).offset(offset))
    rows = list(result.all())

    return rows, Pagination(
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + limit < total,
    )
