from typing import Any, Callable, Optional

from sqlalchemy import func
from sqlmodel import Session, select

MAX_PAGE_SIZE = 50


def paginate(
    *,
    session: Session,
    query,
    page: int = 1,
    limit: int = 10,
    serialize: Optional[Callable[[Any], Any]] = None,
) -> dict:
    """Offset pagination over a select(). The count ignores its ORDER BY"""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    total = session.exec(
        select(func.count()).select_from(query.order_by(None).subquery())
    ).one()

    rows = session.exec(query.offset((page - 1) * limit).limit(limit)).all()
    if serialize is not None:
        rows = [serialize(row) for row in rows]

    return {
        "results": rows,
        "total_items": total,
        "total_pages": -(-total // limit),
        "current_page": page,
        "limit": limit,
        "has_next": page * limit < total,
    }
